"""定时任务抽象。

轮询间隔、模拟流式输出的节奏、运行时查找重试以及延迟滚动都通过 Scheduler
执行，测试中可以替换为虚拟时钟实现，无需真实等待。
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional, Protocol


class ScheduledTask(Protocol):
    def cancel(self) -> None:
        ...

    @property
    def cancelled(self) -> bool:
        ...


class Scheduler(Protocol):
    async def sleep(self, seconds: float) -> None:
        ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ScheduledTask:
        ...


class AsyncioScheduledTask:
    """包装 asyncio.Task，提供统一的 cancel 接口。"""

    def __init__(self, task: "asyncio.Task[Any]"):
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    @property
    def task(self) -> "asyncio.Task[Any]":
        return self._task


class AsyncioScheduler:
    """基于当前事件循环的默认实现。"""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))

    def call_later(self, delay: float, callback: Callable[[], Any]) -> AsyncioScheduledTask:
        async def _run() -> None:
            await asyncio.sleep(max(delay, 0))
            result = callback()
            if inspect.isawaitable(result):
                await result

        return AsyncioScheduledTask(asyncio.ensure_future(_run()))


_default: Optional[AsyncioScheduler] = None


def get_default_scheduler() -> AsyncioScheduler:
    global _default
    if _default is None:
        _default = AsyncioScheduler()
    return _default
