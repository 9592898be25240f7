"""Provider 解析：根据用户偏好与可用性决定本次请求使用哪一个 Provider。

- copilot 偏好：Copilot 可用则用，否则 none（显式指定时不静默回退）。
- gemini 偏好：Gemini 已配置则用，否则 none。
- auto（以及无法识别的值）：优先 Copilot，其次 Gemini，否则 none。

none 是合法结果，由调用方在发请求前检查；这里不抛异常、不写日志。
"""

from typing import Optional

from forge_core.config.settings import settings
from forge_core.domain.models import ProviderKind
from forge_core.domain.preferences import PROVIDER_KEY, PreferenceStore
from forge_core.providers.base import ProviderAdapter


class ProviderResolver:
    def __init__(
        self,
        preferences: PreferenceStore,
        copilot: ProviderAdapter,
        gemini: ProviderAdapter,
        default_preference: Optional[str] = None,
    ):
        self._preferences = preferences
        self._copilot = copilot
        self._gemini = gemini
        self._default_preference = default_preference or getattr(settings, "ai_provider", "auto")

    def preference(self) -> str:
        value = self._preferences.get(PROVIDER_KEY, self._default_preference)
        return str(value or "auto").strip().lower()

    def active_provider(self) -> ProviderKind:
        preference = self.preference()
        if preference == ProviderKind.COPILOT.value:
            return ProviderKind.COPILOT if self._copilot.is_available() else ProviderKind.NONE
        if preference == ProviderKind.GEMINI.value:
            return ProviderKind.GEMINI if self._gemini.is_available() else ProviderKind.NONE
        if self._copilot.is_available():
            return ProviderKind.COPILOT
        if self._gemini.is_available():
            return ProviderKind.GEMINI
        return ProviderKind.NONE

    def adapter_for(self, kind: ProviderKind) -> Optional[ProviderAdapter]:
        if kind == ProviderKind.COPILOT:
            return self._copilot
        if kind == ProviderKind.GEMINI:
            return self._gemini
        return None

    def is_available(self) -> bool:
        return self._copilot.is_available() or self._gemini.is_available()
