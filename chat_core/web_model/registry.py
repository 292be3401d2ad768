"""进程级的模型会话登记表。

整个进程内最多只允许存在一个已加载（或正在加载）的本地模型会话，
无论创建了多少个聊天组件实例。

约定：
- acquire() 是同步的检查并占用操作，中间没有挂起点，因此两个几乎同时的
  加载请求不可能都通过检查。
- 成功 acquire 的一方负责在卸载或加载失败时调用 release()，之后其他
  实例才能重新加载。
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from chat_core.domain.exceptions import MultipleModelsError
from chat_core.domain.models import ConversationTurn
from chat_core.infrastructure.logging.logger import logger


@dataclass
class ModelSession:
    chat_handle: Any
    owner: Any
    loaded: bool = False
    loading: bool = False
    conversation_history: List[ConversationTurn] = field(default_factory=list)


class ModelSessionRegistry:
    def __init__(self) -> None:
        self._session: Optional[ModelSession] = None

    @property
    def current(self) -> Optional[ModelSession]:
        return self._session

    @property
    def occupied(self) -> bool:
        return self._session is not None

    def owned_by(self, owner: Any) -> bool:
        return self._session is not None and self._session.owner is owner

    def acquire(
        self,
        owner: Any,
        chat_handle: Any,
        conversation_history: Optional[List[ConversationTurn]] = None,
    ) -> ModelSession:
        if self._session is not None:
            raise MultipleModelsError()
        self._session = ModelSession(
            chat_handle=chat_handle,
            owner=owner,
            loading=True,
            conversation_history=list(conversation_history or []),
        )
        logger.info("Model session acquired", extra={"extra": {"owner": type(owner).__name__}})
        return self._session

    def release(self, owner: Any) -> Optional[ModelSession]:
        """释放 owner 持有的会话；owner 不匹配时不做任何修改。"""

        if not self.owned_by(owner):
            return None
        session, self._session = self._session, None
        session.loaded = False
        session.loading = False
        logger.info("Model session released", extra={"extra": {"owner": type(owner).__name__}})
        return session


# 全进程共享的默认登记表
MODEL_REGISTRY = ModelSessionRegistry()
