from typing import Any, Protocol

# 偏好键
PROVIDER_KEY = "ai.provider"
GEMINI_MODEL_KEY = "ai.geminiModel"
MODEL_OVERRIDE_PREFIX = "ai.modelOverride."


class PreferenceStore(Protocol):
    """用户偏好的键值存储，格式对引擎不透明。"""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        """写入偏好；value 为 None 表示删除该键。"""
        ...
