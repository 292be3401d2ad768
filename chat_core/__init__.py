"""Chat Core 顶层包。

该包提供聊天组件与后端服务之间的请求编排层，
包括配置加载、领域模型、HTTP 传输、请求调度、长轮询、
API key 校验、流式展示，以及进程内本地模型的生命周期管理。
"""

from chat_core.api.service import call_service_api, verify_key
from chat_core.services import ServiceIO
from chat_core.web_model import ModelLifecycleController

__all__ = ["ModelLifecycleController", "ServiceIO", "call_service_api", "verify_key"]
