"""本地模型的组件级配置与基础 app config 模板。"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass
class LoadConfig:
    """加载时机与缓存控制。

    - on_init: 运行时找到后立即加载。
    - on_message: 在用户发送第一条消息时再加载。
    - clear_cache: 构造时清空模型与 wasm 两个缓存 scope。
    - skip_cache: 本次加载不写入缓存（不会清空已有缓存）。
    """

    on_init: bool = False
    on_message: bool = False
    clear_cache: bool = False
    skip_cache: bool = False


@dataclass
class WebModelUrls:
    model: Optional[str] = None
    wasm: Optional[str] = None


@dataclass
class IntroMessageConfig:
    displayed: bool = True
    auto_scroll: bool = True
    remove_after_load: bool = False
    remove_after_message: bool = False
    after_load_text: str = "Model loaded successfully."


@dataclass
class WebModelConfig:
    model: Optional[str] = None
    urls: WebModelUrls = field(default_factory=WebModelUrls)
    load: LoadConfig = field(default_factory=LoadConfig)
    intro_message: IntroMessageConfig = field(default_factory=IntroMessageConfig)
    worker: Any = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "WebModelConfig":
        """从组件配置字典构造，兼容 camelCase 与 snake_case 键名。"""

        if not data:
            return cls()
        load = data.get("load") or {}
        urls = data.get("urls") or {}
        intro = data.get("introMessage", data.get("intro_message")) or {}
        return cls(
            model=data.get("model"),
            urls=WebModelUrls(model=urls.get("model"), wasm=urls.get("wasm")),
            load=LoadConfig(
                on_init=bool(_pick(load, "onInit", "on_init", False)),
                on_message=bool(_pick(load, "onMessage", "on_message", False)),
                clear_cache=bool(_pick(load, "clearCache", "clear_cache", False)),
                skip_cache=bool(_pick(load, "skipCache", "skip_cache", False)),
            ),
            intro_message=IntroMessageConfig(
                displayed=_pick(intro, "displayed", "displayed", True) is not False,
                auto_scroll=_pick(intro, "autoScroll", "auto_scroll", True) is not False,
                remove_after_load=bool(_pick(intro, "removeAfterLoad", "remove_after_load", False)),
                remove_after_message=bool(_pick(intro, "removeAfterMessage", "remove_after_message", False)),
                after_load_text=_pick(intro, "afterLoad", "after_load_text", IntroMessageConfig.after_load_text),
            ),
            worker=data.get("worker"),
        )


def _pick(data: Mapping[str, Any], camel: str, snake: str, default: Any) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


# 运行时模块读取的基础配置模板，每次加载前深拷贝后再合并覆盖项
BASE_APP_CONFIG: Dict[str, Any] = {
    "model_list": [
        {
            "model_url": "https://huggingface.co/mlc-ai/mlc-chat-Llama-2-7b-chat-hf-q4f32_1/resolve/main/",
            "local_id": "Llama-2-7b-chat-hf-q4f32_1",
        },
        {
            "model_url": "https://huggingface.co/mlc-ai/mlc-chat-RedPajama-INCITE-Chat-3B-v1-q4f32_0/resolve/main/",
            "local_id": "RedPajama-INCITE-Chat-3B-v1-q4f32_0",
        },
    ],
    "model_lib_map": {
        "Llama-2-7b-chat-hf-q4f32_1": (
            "https://raw.githubusercontent.com/mlc-ai/binary-mlc-llm-libs/main/"
            "Llama-2-7b-chat-hf-q4f32_1-webgpu.wasm"
        ),
        "RedPajama-INCITE-Chat-3B-v1-q4f32_0": (
            "https://raw.githubusercontent.com/mlc-ai/binary-mlc-llm-libs/main/"
            "RedPajama-INCITE-Chat-3B-v1-q4f32_0-webgpu.wasm"
        ),
    },
    "use_cache": True,
}


def build_app_config(cfg: WebModelConfig, default_model: str) -> "tuple[str, Dict[str, Any]]":
    """解析模型 ID，并把 URL 覆盖项与 skip_cache 合并进模板副本。

    模板中没有该模型的条目时，model URL 覆盖项会新增一条，wasm 覆盖项直接写入映射。
    """

    model = cfg.model or default_model
    app_config = copy.deepcopy(BASE_APP_CONFIG)
    if cfg.urls.model:
        entry = next((m for m in app_config["model_list"] if m["local_id"] == model), None)
        if entry is None:
            app_config["model_list"].append({"model_url": cfg.urls.model, "local_id": model})
        else:
            entry["model_url"] = cfg.urls.model
    if cfg.urls.wasm:
        app_config["model_lib_map"][model] = cfg.urls.wasm
    if cfg.load.skip_cache:
        app_config["use_cache"] = False
    return model, app_config
