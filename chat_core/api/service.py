"""对外 API 服务模块。

提供简化的函数接口供上层聊天组件调用。
"""

from typing import Any, Callable, Dict, Optional

from chat_core.domain.messages import MessageSink
from chat_core.services.dispatcher import RequestDispatcher
from chat_core.services.polling import PollingController
from chat_core.services.service_io import ServiceIO
from chat_core.services.verification import KeyVerifier, OnFail, OnSuccess, VerificationClassifier
from chat_core.transport import create_transport
from chat_core.transport.base import Transport


_transport: Optional[Transport] = None
_dispatcher: Optional[RequestDispatcher] = None
_poller: Optional[PollingController] = None
_verifier: Optional[KeyVerifier] = None


def get_default_transport() -> Transport:
    """获取默认 Transport 实例（单例）。"""
    global _transport
    if _transport is None:
        _transport = create_transport()
    return _transport


def get_default_dispatcher() -> RequestDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = RequestDispatcher(get_default_transport())
    return _dispatcher


def get_default_poller() -> PollingController:
    global _poller
    if _poller is None:
        _poller = PollingController(get_default_transport())
    return _poller


def get_default_verifier() -> KeyVerifier:
    global _verifier
    if _verifier is None:
        _verifier = KeyVerifier(get_default_transport())
    return _verifier


async def call_service_api(
    io: ServiceIO,
    body: Any,
    sink: MessageSink,
    polling: bool = False,
    stringify_body: bool = True,
) -> None:
    """向服务发送一轮消息。

    Args:
        io: 服务调用配置
        body: 请求体（默认序列化为 JSON）
        sink: 消息出口
        polling: 为 True 时走长轮询链路
        stringify_body: 为 False 时原样发送（如 multipart）
    """
    if polling:
        await get_default_poller().poll(io, body, sink, stringify_body)
    else:
        await get_default_dispatcher().dispatch(io, body, sink, stringify_body)


async def verify_key(
    key: str,
    url: str,
    headers: Dict[str, str],
    method: str,
    on_success: OnSuccess,
    on_fail: OnFail,
    on_load: Callable[[], None],
    classify: VerificationClassifier,
    body: Optional[str] = None,
) -> None:
    await get_default_verifier().verify(key, url, headers, method, on_success, on_fail, on_load, classify, body)
