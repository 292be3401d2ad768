"""Transport 抽象接口。

请求调度层不直接依赖 httpx，而是依赖此协议：

- send(ctx): 发出一次请求，返回按 content-type 分类后的 ResponseEnvelope。
- send_json(ctx): 同上，但无论 content-type 都按 JSON 解析（轮询使用）。

网络不可达等传输层错误统一抛出 NetworkError。
"""

from typing import Protocol

from chat_core.domain.models import RequestContext, ResponseEnvelope


class Transport(Protocol):
    name: str

    async def send(self, ctx: RequestContext) -> ResponseEnvelope:
        ...

    async def send_json(self, ctx: RequestContext) -> ResponseEnvelope:
        ...
