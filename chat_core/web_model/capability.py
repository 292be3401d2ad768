"""本地推理运行时的接口与查找。

运行时（capability）由宿主环境注入，负责创建模型会话；控制器只依赖下面的协议。
resolve_capability 接受三种来源：
- 已经就绪的 capability 对象；
- 一个 awaitable，在 attempts × interval 秒内完成；
- 一个无参查找函数，每 interval 秒调用一次，最多 attempts 次。
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence, Union

from chat_core.domain.exceptions import RuntimeModuleNotFoundError
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.scheduling.scheduler import Scheduler, get_default_scheduler


@dataclass
class InitProgressReport:
    progress: float
    time_elapsed: float
    text: str


ProgressCallback = Callable[[InitProgressReport], None]
# (step, current_message) -> None；current_message 为截至目前的完整文本
GenerateProgressCallback = Callable[[int, str], None]


class ChatEngine(Protocol):
    def set_progress_callback(self, callback: ProgressCallback) -> None:
        ...

    async def reload(
        self,
        model_id: str,
        chat_opts: dict,
        app_config: dict,
        files: Optional[Sequence[Any]] = None,
    ) -> Optional[List[Any]]:
        ...

    async def generate(
        self,
        text: str,
        progress_callback: Optional[GenerateProgressCallback] = None,
        stream_interval: int = 1,
    ) -> str:
        ...

    def interrupt_generate(self) -> Any:
        ...

    async def unload(self) -> None:
        ...


class RuntimeCapability(Protocol):
    def create_session(self) -> ChatEngine:
        ...

    def create_worker_session(self, worker: Any) -> ChatEngine:
        ...


CapabilitySource = Union[RuntimeCapability, Awaitable[RuntimeCapability], Callable[[], Optional[RuntimeCapability]]]


def is_capability(obj: Any) -> bool:
    return obj is not None and callable(getattr(obj, "create_session", None))


def import_lookup(module_name: str) -> Callable[[], Optional[Any]]:
    """返回一个查找函数：模块可以导入时返回该模块，否则返回 None。"""

    def _lookup() -> Optional[Any]:
        try:
            return importlib.import_module(module_name)
        except ImportError:
            return None

    return _lookup


async def resolve_capability(
    source: CapabilitySource,
    *,
    attempts: int,
    interval_s: float,
    scheduler: Optional[Scheduler] = None,
) -> RuntimeCapability:
    if is_capability(source):
        return source  # type: ignore[return-value]

    if inspect.isawaitable(source):
        try:
            found = await asyncio.wait_for(source, timeout=attempts * interval_s)
        except asyncio.TimeoutError:
            raise RuntimeModuleNotFoundError(attempts=attempts)
        if not is_capability(found):
            raise RuntimeModuleNotFoundError(attempts=attempts)
        return found

    if not callable(source):
        raise RuntimeModuleNotFoundError(attempts=0)

    scheduler = scheduler or get_default_scheduler()
    for attempt in range(1, attempts + 1):
        found = source()
        if is_capability(found):
            logger.info("Runtime capability found", extra={"extra": {"attempt": attempt}})
            return found
        if attempt < attempts:
            await scheduler.sleep(interval_s)
    raise RuntimeModuleNotFoundError(attempts=attempts)
