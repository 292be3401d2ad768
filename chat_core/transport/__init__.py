"""HTTP 传输层。

该包下的模块负责：
- 定义 Transport 抽象接口 (base)。
- 按 content-type 分类响应 (response)。
- 提供基于 httpx 的实现 (http_client)。
"""

from chat_core.config.settings import settings
from chat_core.transport.base import Transport
from chat_core.transport.http_client import HttpxTransport


def create_transport() -> Transport:
    """根据当前配置创建 Transport 实例。"""

    return HttpxTransport(settings)
