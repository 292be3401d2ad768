"""调用方注入的策略接口。

请求调度流程中有三处可插拔的环节：

- RequestInterceptor: 发送前改写 body/headers。
- ResponseInterceptor: 收到响应后、提取前改写分类结果。
- ResultExtractor: 把分类结果转换成 ExtractedResult（或普通字典）。

三者都可以是普通函数，也可以是 async 函数；调度器通过 resolve_maybe_awaitable
统一处理，方便单独做单元测试。
"""

import inspect
from typing import Any, Awaitable, Protocol, TypeVar, Union

from .models import ExtractedResult, RequestDetails

T = TypeVar("T")


class RequestInterceptor(Protocol):
    def __call__(self, details: RequestDetails) -> Union[RequestDetails, Awaitable[RequestDetails], None]:
        ...


class ResponseInterceptor(Protocol):
    def __call__(self, result: Any) -> Any:
        ...


class ResultExtractor(Protocol):
    def __call__(self, result: Any) -> Union[ExtractedResult, Any, Awaitable[Any]]:
        ...


async def resolve_maybe_awaitable(value: Union[T, Awaitable[T]]) -> T:
    if inspect.isawaitable(value):
        return await value
    return value
