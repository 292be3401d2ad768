"""本地模型生命周期控制器。

状态流转：UNLOADED → DISCOVERING → LOADING → LOADED；DISCOVERING、LOADING
与 LOADED 都可能进入 ERROR。

- start(): 查找运行时，再按加载时机配置决定立即加载、首条消息时加载，
  还是等待外部调用 init()。
- init(): 同步地在登记表中占用唯一的模型会话槽位，然后异步加载模型。
- call_service_api() / generate(): 生成回答，支持一次性返回与流式输出。
- unload(): 显式卸载并释放槽位。

加载失败或会话不可再用时会卸载模型并释放槽位，之后可以重新尝试加载。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

from chat_core.config.settings import settings
from chat_core.domain.exceptions import (
    MultipleModelsError,
    RuntimeModuleNotFoundError,
    WebModelError,
)
from chat_core.domain.messages import MessageSink
from chat_core.domain.models import MessageContent
from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.scheduling.scheduler import Scheduler, get_default_scheduler
from chat_core.infrastructure.storage.cache_store import CacheStorage, DirectoryCacheStorage
from chat_core.services.service_io import FinishSignal, ServiceIO
from chat_core.services.stream import MessageStream
from chat_core.web_model.cache import clear_all_cache
from chat_core.web_model.capability import (
    CapabilitySource,
    ChatEngine,
    InitProgressReport,
    RuntimeCapability,
    import_lookup,
    resolve_capability,
)
from chat_core.web_model.config import WebModelConfig, build_app_config
from chat_core.web_model.history import InitialMessage, build_conversation_history
from chat_core.web_model.registry import MODEL_REGISTRY, ModelSession, ModelSessionRegistry


class ModelState(str, Enum):
    UNLOADED = "unloaded"
    DISCOVERING = "discovering"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


def is_session_unusable(err: BaseException) -> bool:
    """引擎通过在异常上设置 unusable=True 表示会话已不可再用。"""

    return bool(getattr(err, "unusable", False))


class ModelLifecycleController:
    def __init__(
        self,
        sink: MessageSink,
        capability_source: Optional[CapabilitySource] = None,
        config: Union[WebModelConfig, Mapping[str, Any], None] = None,
        io: Optional[ServiceIO] = None,
        initial_messages: Optional[Sequence[InitialMessage]] = None,
        custom_intro_message: bool = False,
        registry: Optional[ModelSessionRegistry] = None,
        cache_storage: Optional[CacheStorage] = None,
        scheduler: Optional[Scheduler] = None,
        cfg=settings,
    ):
        self._sink = sink
        if capability_source is None:
            capability_source = import_lookup(cfg.web_model_runtime_module)
        self._capability_source = capability_source
        self._config = config if isinstance(config, WebModelConfig) else WebModelConfig.from_dict(config)
        self._io = io or ServiceIO()
        self._registry = registry or MODEL_REGISTRY
        self._scheduler = scheduler or get_default_scheduler()
        self._settings = cfg
        self._custom_intro_message = custom_intro_message
        self._capability: Optional[RuntimeCapability] = None
        self._session: Optional[ModelSession] = None
        self._load_on_first_message = False
        self._intro_removed = False
        self._generating = False
        self.state = ModelState.UNLOADED
        self.conversation_history = build_conversation_history(initial_messages or [])
        if self._config.load.clear_cache:
            clear_all_cache(cache_storage or DirectoryCacheStorage(cfg.cache_root))

    # ---- 状态 ----

    @property
    def is_loaded(self) -> bool:
        return self._session is not None and self._session.loaded and self._registry.owned_by(self)

    @property
    def is_loading(self) -> bool:
        return self._session is not None and self._session.loading

    def can_submit(self, text: Optional[str] = None) -> bool:
        if not (text or "").strip() or self.is_loading or self._generating:
            return False
        if self._load_on_first_message and not self.is_loaded:
            return True
        return self.is_loaded

    # ---- 查找与加载 ----

    async def start(self) -> ModelState:
        self.state = ModelState.DISCOVERING
        try:
            self._capability = await resolve_capability(
                self._capability_source,
                attempts=self._settings.web_model_discovery_attempts,
                interval_s=self._settings.web_model_discovery_interval_s,
                scheduler=self._scheduler,
            )
        except RuntimeModuleNotFoundError as err:
            self.state = ModelState.ERROR
            self._sink.add_new_error_message("service", err.message)
            logger.error(
                "The runtime module is either not installed or has not been provided to the controller",
                extra={"extra": {"code": err.code, **err.extra}},
            )
            return self.state
        self.state = ModelState.UNLOADED
        await self._configure_init(self._should_add_intro_message())
        return self.state

    def _should_add_intro_message(self) -> bool:
        return not self._custom_intro_message and self._config.intro_message.displayed

    async def _configure_init(self, was_intro_set: bool) -> None:
        load = self._config.load
        if load.on_init:
            await self.init()
            return
        if load.on_message:
            self._load_on_first_message = True
            return
        if not was_intro_set:
            await self.init()

    async def init(self, files: Optional[Sequence[Any]] = None) -> bool:
        """加载模型；返回是否加载成功。"""

        try:
            engine = self._attempt_to_create_chat()
        except Exception as err:  # noqa: BLE001 - 创建会话失败时槽位尚未占用
            await self._unload_chat(err)
            return False
        if engine is None:
            return False
        return await self._load_model(engine, files)

    def _attempt_to_create_chat(self) -> Optional[ChatEngine]:
        # 检查与占用之间没有 await
        if self._registry.occupied:
            err = MultipleModelsError()
            # 自己已持有槽位时只提示，不影响已加载的会话
            if not self._registry.owned_by(self):
                self.state = ModelState.ERROR
            self._sink.add_new_error_message("service", err.message)
            logger.error(err.message, extra={"extra": {"code": err.code}})
            return None
        if self._capability is None:
            logger.warning("Model init requested before the runtime capability was resolved")
            return None
        worker = self._config.worker
        if self._settings.use_web_worker and worker is not None:
            engine = self._capability.create_worker_session(worker)
        else:
            engine = self._capability.create_session()
        self._session = self._registry.acquire(self, engine, self.conversation_history)
        self.state = ModelState.LOADING
        return engine

    def _progress_callback(self):
        first = True

        def on_progress(report: InitProgressReport) -> None:
            nonlocal first
            content = MessageContent(html=f"<div>{report.text}</div>", overwrite=True)
            self._sink.add_new_message(content, True, False)
            if first:
                first = False
                if self._config.intro_message.auto_scroll:
                    self._scheduler.call_later(0, self._sink.scroll_to_bottom)

        return on_progress

    async def _load_model(self, engine: ChatEngine, files: Optional[Sequence[Any]]) -> bool:
        engine.set_progress_callback(self._progress_callback())
        try:
            model, app_config = build_app_config(self._config, self._settings.web_model_default_model)
            chat_opts: dict = {"conv_config": {"system": self._settings.web_model_system_prompt}}
            if self.conversation_history:
                chat_opts["conversation_history"] = [list(turn) for turn in self.conversation_history]
            loaded_files = await engine.reload(model, chat_opts, app_config, files)
        except Exception as err:  # noqa: BLE001 - 加载失败统一卸载并提示
            if self._load_abandoned(engine):
                return False
            await self._unload_chat(err)
            return False
        if self._load_abandoned(engine):
            return False

        intro = self._config.intro_message
        if not intro.remove_after_load:
            self._sink.add_new_message(MessageContent(text=intro.after_load_text, overwrite=True), True, False)
        elif not intro.displayed:
            self._sink.remove_last_message()
        else:
            self._remove_intro()
        self._session.loaded = True
        self._session.loading = False
        self.state = ModelState.LOADED
        logger.info(
            "Model loaded",
            extra={"extra": {
                "model": model,
                "use_cache": app_config["use_cache"],
                "history_turns": len(self.conversation_history),
                "files": len(loaded_files or []),
            }},
        )
        return True

    def _load_abandoned(self, engine: ChatEngine) -> bool:
        """加载期间会话已被 unload() 卸载时返回 True，此时引擎已由 _teardown 释放。"""

        session = self._session
        if session is not None and session.chat_handle is engine and self._registry.owned_by(self):
            return False
        logger.warning("Model load abandoned: session was unloaded while loading")
        return True

    def _remove_intro(self) -> None:
        if self._intro_removed:
            return
        self._intro_removed = True
        self._sink.remove_introductory_message()

    # ---- 生成 ----

    async def call_service_api(self, messages: Sequence[InitialMessage]) -> None:
        """处理一轮用户消息：必要时先加载模型，再基于最后一条消息生成回答。"""

        if not self.is_loaded:
            if not self._load_on_first_message:
                return
            await self.init()
        if not self.is_loaded or not messages:
            # 已接受的这一轮无法生成，也要结束
            FinishSignal(self._io.completion_handlers.on_finish, label="web_model")()
            return
        if self._config.intro_message.remove_after_message:
            self._remove_intro()
        self._sink.add_loading_message()
        last = messages[-1]
        text = last.text if isinstance(last, MessageContent) else last.get("text")
        await self.generate(text or "")

    async def generate(self, text: str) -> None:
        if not self.is_loaded or self._generating:
            logger.warning(
                "Generation ignored",
                extra={"extra": {"loaded": self.is_loaded, "generating": self._generating}},
            )
            return
        finish = FinishSignal(self._io.completion_handlers.on_finish, label="web_model")
        engine = self._session.chat_handle
        self._generating = True
        try:
            if self._io.stream:
                await self._stream_resp(text, engine)
            else:
                await self._immediate_resp(text, engine)
        except Exception as err:  # noqa: BLE001 - 生成失败转换为可见错误
            await self._handle_generation_error(err)
        finally:
            self._generating = False
        finish()

    async def _immediate_resp(self, text: str, engine: ChatEngine) -> None:
        # stream_interval 为 0 时引擎不回调中间结果
        output = await engine.generate(text, None, 0)
        self._sink.add_new_message(MessageContent(text=output), True, True)

    async def _stream_resp(self, text: str, engine: ChatEngine) -> None:
        handlers = self._io.stream_handlers
        abort = handlers.abort_stream
        abort.bind(engine.interrupt_generate)
        handlers.on_open()
        stream = MessageStream(self._sink)

        def on_progress(_step: int, message: str) -> None:
            if abort.aborted:
                return
            stream.upsert(message, overwrite=True)

        try:
            await engine.generate(text, on_progress)
            await abort.wait_pending()
        finally:
            stream.finalise()
            abort.bind(None)
        if abort.aborted:
            logger.info("Generation interrupted", extra={"extra": {"chars": len(stream.text)}})
        handlers.on_close()

    async def _handle_generation_error(self, err: BaseException) -> None:
        if is_session_unusable(err):
            await self._unload_chat(err)
            return
        error = WebModelError(cause=str(err))
        logger.error(f"Generation failed: {err}", extra={"extra": {"code": error.code}})
        self._sink.add_new_error_message("service", error.message)

    # ---- 卸载 ----

    async def _unload_chat(self, err: BaseException) -> None:
        error = WebModelError(cause=str(err))
        self._sink.add_new_error_message("service", error.message)
        logger.error(f"Web model failure: {err}", extra={"extra": {"code": error.code}})
        self.state = ModelState.ERROR
        try:
            await self._teardown()
        except Exception as unload_err:  # noqa: BLE001 - 槽位已释放，仅记录卸载失败
            logger.error(f"Failed to unload model: {unload_err}")

    async def _teardown(self) -> None:
        session = self._session
        self._session = None
        if session is None or not self._registry.owned_by(self):
            return
        try:
            await session.chat_handle.unload()
        finally:
            self._registry.release(self)

    async def unload(self) -> None:
        """显式卸载模型并释放进程级槽位。"""

        await self._teardown()
        self.state = ModelState.UNLOADED
