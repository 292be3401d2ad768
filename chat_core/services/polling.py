"""长轮询任务接口的调度。

与 RequestDispatcher 使用同一套拦截器约定，但响应总是按 JSON 解析。
提取结果为 PollAgain 时按服务端给出的间隔再次发出同样的请求，直到拿到
最终结果；每次轮询都在上一次完成后才开始，不会重叠。
"""

from typing import Any, Optional

from chat_core.config.settings import settings
from chat_core.domain.exceptions import InvalidResponseError, invalid_response_message
from chat_core.domain.messages import ErrorReporter, MessageSink
from chat_core.domain.models import Payload, PollAgain, RequestContext, to_extracted_result
from chat_core.domain.strategies import resolve_maybe_awaitable
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.scheduling.scheduler import Scheduler, get_default_scheduler
from chat_core.services.error_display import display_error
from chat_core.services.service_io import FinishSignal, ServiceIO
from chat_core.transport.base import Transport


class PollingController:
    def __init__(
        self,
        transport: Transport,
        scheduler: Optional[Scheduler] = None,
        error_reporter: ErrorReporter = display_error,
        max_attempts: Optional[int] = None,
    ):
        self._transport = transport
        self._scheduler = scheduler or get_default_scheduler()
        self._report_error = error_reporter
        self._max_attempts = max_attempts if max_attempts is not None else settings.poll_max_attempts

    async def poll(self, io: ServiceIO, body: Any, sink: MessageSink, stringify_body: bool = True) -> None:
        finish = FinishSignal(io.completion_handlers.on_finish, label="poll")
        try:
            ctx = await io.build_request(body, stringify_body)
            content = await self._execute(io, ctx)
            sink.add_new_message(content, True, True)
        except Exception as err:  # noqa: BLE001 - 统一转换为可见错误
            self._report_error(err, sink)
        finish()

    async def _execute(self, io: ServiceIO, ctx: RequestContext):
        if io.extract_poll_result_data is None:
            raise InvalidResponseError(message="No poll result extractor configured for this service")
        attempt = 0
        while True:
            attempt += 1
            logger.info("polling", extra={"extra": {"url": ctx.url, "attempt": attempt}})
            envelope = await self._transport.send_json(ctx)
            final_result = await io.intercept_response(envelope.classified)
            extracted = to_extracted_result(
                await resolve_maybe_awaitable(io.extract_poll_result_data(final_result))
            )
            if isinstance(extracted, PollAgain):
                if self._max_attempts is not None and attempt >= self._max_attempts:
                    raise InvalidResponseError(
                        message=f"Polling stopped after {attempt} attempts without a result",
                        payload=envelope.classified,
                        attempts=attempt,
                    )
                await self._scheduler.sleep(extracted.timeout_ms / 1000)
                continue
            if isinstance(extracted, Payload):
                logger.info("finished polling", extra={"extra": {"url": ctx.url, "attempts": attempt}})
                return extracted.content
            raise InvalidResponseError(
                message=invalid_response_message(
                    envelope.classified,
                    "response",
                    io.response_interceptor is not None,
                    final_result,
                ),
                payload=envelope.classified,
            )
