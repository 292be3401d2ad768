"""流式消息展示。

MessageStream 负责一轮回答的增量展示：第一次 upsert 新增一条消息，之后的
upsert 覆盖同一条消息，finalise 只发送一次带 send_update 的最终消息。
StreamAdapter.simulate 把一次性拿到的完整文本拆成词，模拟流式输出。
"""

from __future__ import annotations

import re
from typing import List, Optional

from chat_core.config.settings import settings
from chat_core.domain.messages import MessageSink
from chat_core.domain.models import MessageContent
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.scheduling.scheduler import Scheduler, get_default_scheduler
from chat_core.services.service_io import StreamHandlers


class MessageStream:
    def __init__(self, sink: MessageSink):
        self._sink = sink
        self._text = ""
        self._started = False
        self.finalised = False

    @property
    def text(self) -> str:
        return self._text

    def upsert(self, text: str, overwrite: bool = False) -> None:
        """追加（或在 overwrite=True 时替换）当前累计文本并刷新可见消息。"""

        if self.finalised:
            return
        self._text = text if overwrite else self._text + text
        content = MessageContent(text=self._text, overwrite=self._started)
        self._sink.add_new_message(content, True, False)
        self._started = True

    def finalise(self) -> None:
        if self.finalised:
            return
        self.finalised = True
        if not self._started:
            return
        self._sink.add_new_message(MessageContent(text=self._text, overwrite=True), True, True)


def split_words(text: str) -> List[str]:
    """按空白切分，保留每个词后面的空白，拼接后与原文一致。"""

    return re.findall(r"\S+\s*|\s+", text)


class StreamAdapter:
    def __init__(self, scheduler: Optional[Scheduler] = None, interval_ms: Optional[int] = None):
        self._scheduler = scheduler or get_default_scheduler()
        self._interval_ms = settings.stream_simulation_interval_ms if interval_ms is None else interval_ms

    async def simulate(self, sink: MessageSink, text: str, handlers: StreamHandlers) -> MessageStream:
        stream = MessageStream(sink)
        handlers.abort_stream.bind(None)
        handlers.on_open()
        words = split_words(text)
        for i, word in enumerate(words):
            if handlers.abort_stream.aborted:
                logger.info("Simulated stream aborted", extra={"extra": {"delivered": i, "total": len(words)}})
                break
            stream.upsert(word)
            if i < len(words) - 1:
                await self._scheduler.sleep(self._interval_ms / 1000)
        stream.finalise()
        handlers.on_close()
        return stream
