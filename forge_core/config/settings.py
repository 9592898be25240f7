"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
这里只保存静态配置（API 密钥、端点、目录、上限等），
用户在面板中修改的偏好（Provider 选择、各用途的模型）走 PreferenceStore。
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
    explicit = os.getenv("FORGE_CONFIG_FILE")
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


class ForgeSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 选择 ----
    ai_provider: str = Field(
        default="auto",
        description="默认 Provider 偏好：auto、copilot 或 gemini（可被面板偏好覆盖）",
    )

    # Gemini（远程 API Key 方式）
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST API 基础URL",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="未设置用途覆盖时使用的 Gemini 模型",
    )

    # Copilot（宿主集成，默认实现走 OpenAI 兼容的 chat/completions 端点）
    copilot_api_key: Optional[str] = Field(default=None, description="Copilot / GitHub Models 令牌")
    copilot_base_url: str = Field(
        default="https://models.github.ai/inference",
        description="chat/completions 端点基础URL",
    )

    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")
    storage_root: str = Field(default=".storage", description="偏好存储根目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    max_history_turns: int = Field(default=10, ge=1, le=50, description="聊天时携带的历史轮数")
    max_tool_rounds: int = Field(
        default=5,
        ge=0,
        le=5,
        description="聊天内工具调用最大轮数（请求总数为该值 + 1，硬上限 5）",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key", "copilot_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("ai_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return (v or "auto").strip().lower()

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


settings = ForgeSettings()
