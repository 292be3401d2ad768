"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在请求调度层或模型生命周期层做统一捕获与用户提示。
"""

import json
from typing import Any


# 直接展示给用户的错误文案
INVALID_KEY = "Invalid API Key"
CONNECTION_FAILED = "Failed to connect"
DEFAULT_SERVICE_ERROR = "Service error, please try again."
MULTIPLE_MODELS_ERROR = "Cannot run multiple web models"
WEB_LLM_NOT_FOUND_ERROR = "WebLLM module not found"
WEB_MODEL_GENERIC_ERROR = (
    "Error, please check the following list of "
    "[instructions](https://deepchat.dev/docs/webModel#error) to fix this."
)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return repr(value)


def invalid_response_message(
    result: Any,
    kind: str = "response",
    has_interceptor: bool = False,
    intercepted: Any = None,
) -> str:
    """构造“响应格式不正确”的提示信息。

    配置了 response interceptor 时额外附上拦截后的结果，方便定位是
    原始响应还是拦截器产出的数据不符合约定。
    """

    message = f"{kind.capitalize()} is in an incorrect format: {_dump(result)}."
    if has_interceptor:
        message += f" The {kind} interceptor returned: {_dump(intercepted)}."
    return message


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "INVALID_RESPONSE"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 payload、scope 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class InvalidResponseError(BusinessError):
    """传输层返回非 2xx，或提取结果结构不合法。

    payload 保存分类后的原始响应（或提取结果），便于展示服务端错误。
    """

    def __init__(self, message: str, payload: Any = None, http_status: int = 502, **extra):
        super().__init__(code="INVALID_RESPONSE", message=message, http_status=http_status, **extra)
        self.payload = payload

    @classmethod
    def from_payload(cls, payload: Any, http_status: int = 502) -> "InvalidResponseError":
        if isinstance(payload, dict) and not payload:
            message = DEFAULT_SERVICE_ERROR
        elif isinstance(payload, str):
            message = payload or DEFAULT_SERVICE_ERROR
        else:
            message = _dump(payload)
        return cls(message=message, payload=payload, http_status=http_status)


class ConnectionFailedError(BusinessError):
    """校验 key 时网络不可达。"""

    def __init__(self, message: str = CONNECTION_FAILED, **extra):
        super().__init__(code="CONNECTION_FAILED", message=message, http_status=503, **extra)


class InvalidKeyError(BusinessError):
    """传入的 key 为空。"""

    def __init__(self, message: str = INVALID_KEY, **extra):
        super().__init__(code="INVALID_KEY", message=message, http_status=401, **extra)


class RuntimeModuleNotFoundError(BusinessError):
    """在查找窗口内始终没有找到本地推理运行时。"""

    def __init__(self, message: str = WEB_LLM_NOT_FOUND_ERROR, **extra):
        super().__init__(code="MODULE_NOT_FOUND", message=message, http_status=500, **extra)


class MultipleModelsError(BusinessError):
    """进程内已经存在一个模型会话时再次尝试创建。"""

    def __init__(self, message: str = MULTIPLE_MODELS_ERROR, **extra):
        super().__init__(code="MULTIPLE_MODELS", message=message, http_status=409, **extra)


class WebModelError(BusinessError):
    """模型配置、加载或生成过程中其他未分类的错误。"""

    def __init__(self, message: str = WEB_MODEL_GENERIC_ERROR, **extra):
        super().__init__(code="WEB_MODEL_ERROR", message=message, http_status=500, **extra)
