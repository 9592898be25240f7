"""Provider 与模型目录配置。

- Gemini 没有可查询的模型列表接口依赖，这里维护一份静态目录，
  用于校验用途覆盖和在面板里展示。
- Copilot 的默认实现（ChatCompletionsHost）同样使用静态目录，
  vendor 固定为 "copilot"，默认回退链依次为 family="gpt-4o"、任意 copilot 模型。
"""

from dataclasses import dataclass
from typing import Dict, List

from forge_core.domain.models import ModelDescriptor

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
COPILOT_VENDOR = "copilot"
COPILOT_PREFERRED_FAMILY = "gpt-4o"


@dataclass
class ModelConfig:
    """单个模型的配置。"""

    id: str
    name: str
    family: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    vendor: str
    base_url: str
    models: Dict[str, ModelConfig]

    def descriptors(self) -> List[ModelDescriptor]:
        return [
            ModelDescriptor(id=m.id, name=m.name, vendor=self.vendor, family=m.family)
            for m in self.models.values()
        ]


def _models(*items: ModelConfig) -> Dict[str, ModelConfig]:
    return {m.id: m for m in items}


GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    vendor="google",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models=_models(
        ModelConfig("gemini-2.5-flash", "Gemini 2.5 Flash", "gemini", 8192, 0.7),
        ModelConfig("gemini-2.5-pro", "Gemini 2.5 Pro", "gemini", 8192, 0.7),
        ModelConfig("gemini-2.5-flash-lite", "Gemini 2.5 Flash-Lite", "gemini", 8192, 0.7),
        ModelConfig("gemini-2.0-flash", "Gemini 2.0 Flash", "gemini", 8192, 0.7),
    ),
)

COPILOT_CONFIG = ProviderConfig(
    name="copilot",
    vendor=COPILOT_VENDOR,
    base_url="https://models.github.ai/inference",
    models=_models(
        ModelConfig("openai/gpt-4o", "GPT-4o", "gpt-4o", 4096, 0.7),
        ModelConfig("openai/gpt-4o-mini", "GPT-4o mini", "gpt-4o-mini", 4096, 0.7),
        ModelConfig("openai/gpt-4.1", "GPT-4.1", "gpt-4.1", 8192, 0.7),
        ModelConfig("openai/gpt-4.1-mini", "GPT-4.1 mini", "gpt-4.1-mini", 8192, 0.7),
    ),
)

