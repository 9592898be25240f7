"""LLM Provider 集成层。

该包下的模块负责：
- 定义 ProviderAdapter / LanguageModelHost 抽象接口 (base)。
- 维护 Provider 与模型目录 (registry)。
- 提供两个 Provider 的具体实现：copilot_adapter（宿主集成）、gemini_client（API Key）。
- chat_completions_host：默认的宿主实现（OpenAI 兼容端点）。
"""

from typing import Optional, Tuple

from forge_core.config.settings import settings
from forge_core.domain.preferences import PreferenceStore
from forge_core.providers.base import LanguageModelHost, ProviderAdapter
from forge_core.providers.chat_completions_host import ChatCompletionsHost
from forge_core.providers.copilot_adapter import CopilotAdapter
from forge_core.providers.gemini_client import GeminiAdapter, GeminiClient


def create_adapters(
    preferences: PreferenceStore,
    host: Optional[LanguageModelHost] = None,
    cfg=settings,
) -> Tuple[ProviderAdapter, ProviderAdapter]:
    """创建 (copilot, gemini) 两个适配器。

    未显式传入宿主时使用 ChatCompletionsHost；它在未配置令牌时报告不可用。
    """

    copilot = CopilotAdapter(host if host is not None else ChatCompletionsHost(cfg))
    gemini = GeminiAdapter(GeminiClient(cfg), preferences, cfg)
    return copilot, gemini
