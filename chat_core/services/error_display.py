import json
from typing import Any

from chat_core.domain.exceptions import DEFAULT_SERVICE_ERROR, BusinessError
from chat_core.domain.messages import MessageSink
from chat_core.infrastructure.logging.logger import logger


def error_text(error: Any, default_message: str = DEFAULT_SERVICE_ERROR) -> str:
    if isinstance(error, BusinessError):
        return error.message or default_message
    if isinstance(error, dict):
        if not error:
            return default_message
        return json.dumps(error, ensure_ascii=False, default=str)
    if isinstance(error, str):
        return error or default_message
    if isinstance(error, BaseException):
        return str(error) or default_message
    return default_message


def display_error(error: Any, sink: MessageSink, default_message: str = DEFAULT_SERVICE_ERROR) -> None:
    """记录错误并以 service 类别展示到消息出口。"""

    extra = {"error_type": type(error).__name__}
    if isinstance(error, BusinessError):
        extra["code"] = error.code
    logger.error(f"Service call failed: {error}", extra={"extra": extra})
    sink.add_new_error_message("service", error_text(error, default_message))
