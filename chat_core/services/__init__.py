"""后端服务调用层。

该包下的模块负责：
- 单个服务的调用配置与回调集合 (service_io)。
- 一次请求/响应的调度 (dispatcher)。
- 长轮询任务接口 (polling)。
- API key 校验 (verification)。
- 流式消息展示 (stream) 与统一错误展示 (error_display)。
"""

from chat_core.services.dispatcher import RequestDispatcher
from chat_core.services.polling import PollingController
from chat_core.services.service_io import (
    AbortHandle,
    CompletionHandlers,
    FinishSignal,
    ServiceIO,
    StreamHandlers,
)
from chat_core.services.stream import MessageStream, StreamAdapter
from chat_core.services.verification import KeyVerifier

__all__ = [
    "AbortHandle",
    "CompletionHandlers",
    "FinishSignal",
    "KeyVerifier",
    "MessageStream",
    "PollingController",
    "RequestDispatcher",
    "ServiceIO",
    "StreamAdapter",
    "StreamHandlers",
]
