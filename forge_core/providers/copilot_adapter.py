"""Copilot Provider 适配器（宿主集成）。

把 LanguageModelHost 包装成统一的 ProviderAdapter：
- 支持原生工具调用，流中包含 TextPart 与 ToolCall。
- 默认回退链：vendor=copilot & family=gpt-4o → 任意 copilot 模型 → 宿主提供的任意模型。
"""

from typing import Any, Dict, Iterable, List, Optional

from forge_core.domain.cancellation import CancellationToken
from forge_core.domain.exceptions import BusinessError
from forge_core.domain.models import ChatMessage, ModelDescriptor, ModelSelector, ProviderKind, ResponsePart, TextPart
from forge_core.infrastructure.logging.logger import logger
from forge_core.providers.base import LanguageModelHost
from forge_core.providers.registry import COPILOT_PREFERRED_FAMILY, COPILOT_VENDOR
from forge_core.tools.definitions import ToolDef

DEFAULT_SELECTORS = (
    ModelSelector(vendor=COPILOT_VENDOR, family=COPILOT_PREFERRED_FAMILY),
    ModelSelector(vendor=COPILOT_VENDOR),
    ModelSelector(),
)


class CopilotAdapter:
    kind = ProviderKind.COPILOT
    supports_tools = True

    def __init__(self, host: Optional[LanguageModelHost]):
        self._host = host

    def is_available(self) -> bool:
        return self._host is not None and self._host.is_available()

    def list_models(self) -> List[ModelDescriptor]:
        if self._host is None:
            return []
        try:
            return list(self._host.select_chat_models(ModelSelector()))
        except BusinessError as e:
            logger.warning("Failed to list Copilot models", extra={"extra": {"error": e.message}})
            return []

    def select_model(self, selector: ModelSelector) -> Optional[ModelDescriptor]:
        if self._host is None:
            return None
        models = self._host.select_chat_models(selector)
        return models[0] if models else None

    def default_model(self) -> Optional[ModelDescriptor]:
        for selector in DEFAULT_SELECTORS:
            model = self.select_model(selector)
            if model is not None:
                return model
        logger.warning("No Copilot language models available")
        return None

    def complete(self, model: ModelDescriptor, messages: List[ChatMessage], token: CancellationToken) -> str:
        # 宿主只提供流式接口，这里在内部读完，不向调用方做增量输出
        pieces: List[str] = []
        for part in self.stream(model, messages, None, token):
            if isinstance(part, TextPart):
                pieces.append(part.value)
        return "".join(pieces)

    def stream(
        self,
        model: ModelDescriptor,
        messages: List[ChatMessage],
        tools: Optional[List[ToolDef]],
        token: CancellationToken,
    ) -> Iterable[ResponsePart]:
        token.raise_if_cancelled()
        for part in self._host.send_request(model.id, messages, tools or None, token):
            token.raise_if_cancelled()
            yield part

    def tools(self) -> List[ToolDef]:
        if self._host is None:
            return []
        return list(self._host.tools)

    def invoke_tool(self, name: str, arguments: Dict[str, Any], token: CancellationToken) -> str:
        return self._host.invoke_tool(name, arguments, token)
