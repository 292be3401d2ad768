"""API key 校验。

key 为空时直接失败，不发请求；否则先触发 on_load，再发一次请求，
把分类后的响应交给调用方提供的 classify 函数决定成功还是失败。
请求或 classify 抛出的异常统一映射为 CONNECTION_FAILED。
"""

from typing import Any, Callable, Dict, Optional

from chat_core.domain.exceptions import ConnectionFailedError, InvalidKeyError
from chat_core.domain.models import RequestContext
from chat_core.domain.strategies import resolve_maybe_awaitable
from chat_core.infrastructure.logging.logger import logger
from chat_core.transport.base import Transport


OnSuccess = Callable[[str], None]
OnFail = Callable[[str], None]
# (result, key, on_success, on_fail) -> None
VerificationClassifier = Callable[[Any, str, OnSuccess, OnFail], Any]


class KeyVerifier:
    def __init__(self, transport: Transport):
        self._transport = transport

    async def verify(
        self,
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
        if key == "":
            on_fail(InvalidKeyError().message)
            return
        on_load()
        ctx = RequestContext(url=url, method=method.upper(), headers=dict(headers or {}), body=body, stringify_body=False)
        try:
            envelope = await self._transport.send(ctx)
            await resolve_maybe_awaitable(classify(envelope.classified, key, on_success, on_fail))
        except Exception as err:  # noqa: BLE001 - 请求或分类失败都通过 on_fail 回调返回
            logger.error(f"Key verification failed: {err}", extra={"extra": {"url": url}})
            on_fail(ConnectionFailedError().message)
