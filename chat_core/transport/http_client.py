"""基于 httpx 的 Transport 实现。"""

from typing import Any, Callable

import httpx

from chat_core.config.settings import settings
from chat_core.domain.exceptions import NetworkError
from chat_core.domain.models import RequestContext, ResponseEnvelope
from chat_core.transport.response import classify_response, is_valid_status, parse_json


class HttpxTransport:
    """httpx.AsyncClient 实现，每次请求使用独立的 client。"""

    name = "httpx"

    def __init__(self, cfg=settings):
        self._settings = cfg

    async def send(self, ctx: RequestContext) -> ResponseEnvelope:
        return await self._request(ctx, classify_response)

    async def send_json(self, ctx: RequestContext) -> ResponseEnvelope:
        return await self._request(ctx, parse_json)

    async def _request(self, ctx: RequestContext, parse: Callable[[Any], Any]) -> ResponseEnvelope:
        try:
            async with httpx.AsyncClient(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = await client.request(
                    ctx.method,
                    ctx.url,
                    headers=ctx.headers or None,
                    **ctx.encoded_body(),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), url=ctx.url)
        # 有效性与解析互不影响：非 2xx 也要解析，交给提取函数取出错误信息
        return ResponseEnvelope(
            status_code=resp.status_code,
            valid=is_valid_status(resp.status_code),
            classified=parse(resp),
            raw=resp,
        )
