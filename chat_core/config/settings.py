"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CORE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class ChatCoreSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- HTTP 请求相关配置 ----
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    default_method: str = Field(default="POST", description="未指定 method 时使用的 HTTP 方法")
    stream_simulation_interval_ms: int = Field(
        default=70,
        ge=0,
        description="模拟流式输出时相邻两个词之间的间隔（毫秒）",
    )
    poll_max_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="轮询请求最大次数；为空表示不限制，由服务端决定何时结束",
    )

    # ---- 本地模型（web model）相关配置 ----
    web_model_default_model: str = Field(
        default="Llama-2-7b-chat-hf-q4f32_1",
        description="未指定模型时加载的默认模型 ID",
    )
    web_model_system_prompt: str = Field(
        default="keep responses to one sentence",
        description="加载模型时写入 conv_config 的 system 提示词",
    )
    web_model_runtime_module: str = Field(
        default="web_llm",
        description="未显式提供运行时时，按此模块名导入查找",
    )
    web_model_discovery_attempts: int = Field(
        default=5,
        ge=1,
        description="查找运行时模块的最大尝试次数",
    )
    web_model_discovery_interval_s: float = Field(
        default=1.0,
        ge=0.0,
        description="两次查找运行时模块之间的间隔（秒）",
    )
    use_web_worker: bool = Field(default=True, description="配置了 worker 时是否使用 worker 会话")
    cache_root: str = Field(default=".cache/webllm", description="模型缓存根目录")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("default_method")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if not v:
            raise ValueError("default_method must not be empty")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = ChatCoreSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = ChatCoreSettings
