from typing import Any, Protocol

from .models import MessageContent


class MessageSink(Protocol):
    """聊天界面的消息出口，由上层 UI 实现。"""

    def add_new_message(self, content: MessageContent, is_bot: bool = True, send_update: bool = True) -> None:
        ...

    def add_loading_message(self) -> None:
        ...

    def remove_last_message(self) -> None:
        ...

    def add_new_error_message(self, category: str, text: str) -> None:
        ...

    def remove_introductory_message(self) -> None:
        ...

    def scroll_to_bottom(self) -> None:
        ...


class ErrorReporter(Protocol):
    """把错误渲染到消息出口的协作者。"""

    def __call__(self, error: Any, sink: MessageSink) -> None:
        ...
