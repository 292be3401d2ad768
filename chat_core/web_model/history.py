from typing import Any, List, Mapping, Optional, Sequence, Union

from chat_core.domain.models import USER_ROLE, ConversationTurn, MessageContent


InitialMessage = Union[MessageContent, Mapping[str, Any]]


def _role_and_text(message: InitialMessage) -> "tuple[Optional[str], Optional[str]]":
    if isinstance(message, MessageContent):
        return message.role, message.text
    return message.get("role"), message.get("text")


def build_conversation_history(initial_messages: Sequence[InitialMessage]) -> List[ConversationTurn]:
    """从初始消息中提取 (用户, 助手) 对话对。

    只有“带文本的用户消息 + 紧随其后的带文本非用户消息”才会组成一对；
    没有回复的用户消息被跳过，顺序保持不变。
    """

    history: List[ConversationTurn] = []
    for index, message in enumerate(initial_messages):
        role, text = _role_and_text(message)
        if role != USER_ROLE or not text:
            continue
        if index + 1 >= len(initial_messages):
            continue
        next_role, next_text = _role_and_text(initial_messages[index + 1])
        if next_text and next_role != USER_ROLE:
            history.append(ConversationTurn(text, next_text))
    return history
