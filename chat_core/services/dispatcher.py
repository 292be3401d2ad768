"""一次请求/响应的调度。

流程（严格按顺序执行）：
1. 请求拦截器改写 body/headers。
2. 发出请求，记录 HTTP 有效性但不立即失败。
3. 按 content-type 分类响应，执行响应拦截器。
4. 调用提取函数（即使 HTTP 失败也先提取，方便取出服务端错误信息）。
5. HTTP 失败或提取结果不合法时抛出 InvalidResponseError。
6. 按提取结果投递：直接展示、模拟流式展示或交给其他请求链路。

任何一步出错都只捕获一次，通过错误展示协作者输出，并保证 on_finish
在每次调度中恰好触发一次。
"""

from typing import Any, Optional

from chat_core.domain.exceptions import InvalidResponseError, invalid_response_message
from chat_core.domain.messages import ErrorReporter, MessageSink
from chat_core.domain.models import Payload, PollingElsewhere, to_extracted_result
from chat_core.domain.strategies import resolve_maybe_awaitable
from chat_core.infrastructure.logging.logger import logger
from chat_core.services.error_display import display_error
from chat_core.services.service_io import FinishSignal, ServiceIO
from chat_core.services.stream import StreamAdapter
from chat_core.transport.base import Transport


class RequestDispatcher:
    def __init__(
        self,
        transport: Transport,
        stream_adapter: Optional[StreamAdapter] = None,
        error_reporter: ErrorReporter = display_error,
    ):
        self._transport = transport
        self._stream_adapter = stream_adapter or StreamAdapter()
        self._report_error = error_reporter

    async def dispatch(self, io: ServiceIO, body: Any, sink: MessageSink, stringify_body: bool = True) -> None:
        finish = FinishSignal(io.completion_handlers.on_finish)
        try:
            delivered = await self._dispatch(io, body, sink, stringify_body)
        except Exception as err:  # noqa: BLE001 - 统一转换为可见错误
            self._report_error(err, sink)
            finish()
            return
        if delivered:
            finish()

    async def _dispatch(self, io: ServiceIO, body: Any, sink: MessageSink, stringify_body: bool) -> bool:
        """返回 True 表示结果已投递，需要触发 finish。"""

        if io.extract_result_data is None:
            raise InvalidResponseError(message="No result extractor configured for this service")
        ctx = await io.build_request(body, stringify_body)
        envelope = await self._transport.send(ctx)
        final_result = await io.intercept_response(envelope.classified)
        extracted = to_extracted_result(await resolve_maybe_awaitable(io.extract_result_data(final_result)))

        if not envelope.valid:
            raise InvalidResponseError.from_payload(envelope.classified, http_status=envelope.status_code)
        if isinstance(extracted, PollingElsewhere):
            logger.info("Result delivered by another request", extra={"extra": {"url": ctx.url}})
            return False
        if isinstance(extracted, Payload):
            content = extracted.content
            if io.stream and content.text:
                await self._stream_adapter.simulate(sink, content.text, io.stream_handlers)
            else:
                sink.add_new_message(content, True, True)
            return True
        # Malformed，或在非轮询链路上收到 PollAgain
        raise InvalidResponseError(
            message=invalid_response_message(
                envelope.classified,
                "response",
                io.response_interceptor is not None,
                final_result,
            ),
            payload=envelope.classified,
        )
