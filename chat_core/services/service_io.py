"""单个服务的调用配置与回调集合。"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from chat_core.config.settings import settings
from chat_core.domain.models import RequestContext, RequestDetails, RequestSettings
from chat_core.domain.strategies import (
    RequestInterceptor,
    ResponseInterceptor,
    ResultExtractor,
    resolve_maybe_awaitable,
)
from chat_core.infrastructure.logging.logger import logger


def _noop() -> None:
    return None


class AbortHandle:
    """流式生成的中断句柄。

    控制器把底层引擎的中断函数 bind 进来，外部调用 abort() 即可停止生成。
    中断函数返回协程时会被调度到当前事件循环上执行。
    """

    def __init__(self) -> None:
        self._callback: Optional[Callable[[], Any]] = None
        self._pending: Optional["asyncio.Future[Any]"] = None
        self.aborted = False

    def bind(self, callback: Optional[Callable[[], Any]]) -> None:
        self._callback = callback
        self.aborted = False

    def abort(self) -> None:
        self.aborted = True
        if self._callback is None:
            return
        result = self._callback()
        if inspect.isawaitable(result):
            self._pending = asyncio.ensure_future(result)

    async def wait_pending(self) -> None:
        if self._pending is not None:
            await self._pending
            self._pending = None


@dataclass
class CompletionHandlers:
    on_finish: Callable[[], None] = _noop


@dataclass
class StreamHandlers:
    on_open: Callable[[], None] = _noop
    on_close: Callable[[], None] = _noop
    abort_stream: AbortHandle = field(default_factory=AbortHandle)


class FinishSignal:
    """保证 on_finish 在一轮对话中最多触发一次。"""

    def __init__(self, callback: Callable[[], None], label: str = "dispatch"):
        self._callback = callback
        self._label = label
        self.fired = False

    def __call__(self) -> None:
        if self.fired:
            logger.warning("Finish signal fired twice, ignored", extra={"extra": {"turn": self._label}})
            return
        self.fired = True
        self._callback()


@dataclass
class ServiceIO:
    """一个后端服务的完整调用配置。

    - request_settings: url / method / headers。
    - request_interceptor / response_interceptor: 可选的请求与响应改写函数。
    - extract_result_data / extract_poll_result_data: 调用方提供的提取函数。
    - stream: 本服务是否以流式方式展示结果。
    - completion_handlers / stream_handlers: 结束、流开始/关闭与中断回调。
    """

    request_settings: RequestSettings = field(default_factory=RequestSettings)
    request_interceptor: Optional[RequestInterceptor] = None
    response_interceptor: Optional[ResponseInterceptor] = None
    extract_result_data: Optional[ResultExtractor] = None
    extract_poll_result_data: Optional[ResultExtractor] = None
    stream: bool = False
    completion_handlers: CompletionHandlers = field(default_factory=CompletionHandlers)
    stream_handlers: StreamHandlers = field(default_factory=StreamHandlers)

    async def build_request(self, body: Any, stringify_body: bool = True) -> RequestContext:
        """执行请求拦截器并构造本次请求。"""

        details = RequestDetails(body=body, headers=dict(self.request_settings.headers or {}))
        if self.request_interceptor is not None:
            intercepted = await resolve_maybe_awaitable(self.request_interceptor(details))
            if intercepted is not None:
                details = intercepted
        return RequestContext(
            url=self.request_settings.url,
            method=(self.request_settings.method or settings.default_method).upper(),
            headers=dict(details.headers or {}),
            body=details.body,
            stringify_body=stringify_body,
        )

    async def intercept_response(self, result: Any) -> Any:
        if self.response_interceptor is None:
            return result
        intercepted = await resolve_maybe_awaitable(self.response_interceptor(result))
        return result if intercepted is None else intercepted
