"""对外 API 服务模块。

- build_ai_service：按配置组装 AiService（偏好存储、两个 Provider 适配器、解析器、模型存储）。
- AiMessageHandler：面板消息处理层，把 ai.* 消息映射到 AiService 调用，
  并把结果、流式片段与错误通过 post 回调发回面板。
"""

import threading
from typing import Any, Callable, Dict, Optional

from forge_core.agents.ai_service import AiService
from forge_core.config.settings import settings
from forge_core.domain.cancellation import CancellationTokenSource
from forge_core.domain.exceptions import BusinessError
from forge_core.domain.models import ConversationTurn
from forge_core.domain.preferences import PreferenceStore
from forge_core.engine.model_store import ModelAssignmentStore
from forge_core.engine.resolver import ProviderResolver
from forge_core.infrastructure.logging.logger import logger
from forge_core.infrastructure.storage.json_store import JsonPreferenceStore
from forge_core.providers import create_adapters
from forge_core.providers.base import LanguageModelHost

PostMessage = Callable[[Dict[str, Any]], None]
ContextProvider = Callable[[Optional[str]], str]


def build_ai_service(
    preferences: Optional[PreferenceStore] = None,
    host: Optional[LanguageModelHost] = None,
    cfg=settings,
) -> AiService:
    """组装 AiService。

    Args:
        preferences: 偏好存储（可选，默认使用 storage_root 下的 JSON 文件）
        host: 宿主语言模型集成（可选，默认使用 OpenAI 兼容端点）
        cfg: 配置对象
    """
    if preferences is None:
        preferences = JsonPreferenceStore(root=cfg.storage_root)
    copilot, gemini = create_adapters(preferences, host=host, cfg=cfg)
    resolver = ProviderResolver(preferences, copilot, gemini, default_preference=cfg.ai_provider)
    return AiService(
        resolver,
        ModelAssignmentStore(preferences),
        max_history_turns=cfg.max_history_turns,
        max_tool_rounds=cfg.max_tool_rounds,
    )


class AiMessageHandler:
    """面板 ai.* 消息处理。

    handle() 在调用线程内同步执行请求；ai.cancel 可从其他线程调用。
    同一类（chat / agent）的新请求会先取消上一个尚未结束的请求。
    """

    def __init__(self, service: AiService, context_provider: ContextProvider, post: PostMessage):
        self._service = service
        self._context_provider = context_provider
        self._post = post
        self._lock = threading.Lock()
        self._outstanding: Dict[str, CancellationTokenSource] = {}

    def handle(self, message: Dict[str, Any]) -> None:
        kind = message.get("type")
        if kind == "ai.summarize":
            self._handle_summarize(message)
        elif kind == "ai.chat":
            self._handle_chat(message)
        elif kind == "ai.agent":
            self._handle_agent(message)
        elif kind == "ai.listModels":
            self._post_model_list()
        elif kind == "ai.setModel":
            self._handle_set_model(message)
        elif kind == "ai.cancel":
            self.cancel_all()
        else:
            logger.warning("Unknown AI message", extra={"extra": {"type": kind}})

    def cancel_all(self) -> None:
        with self._lock:
            sources, self._outstanding = list(self._outstanding.values()), {}
        for source in sources:
            source.cancel()

    # ---- handlers ----

    def _handle_summarize(self, message: Dict[str, Any]) -> None:
        tab_key = str(message.get("tabKey") or "")
        try:
            summary = self._service.summarize(
                tab_key,
                self._context_provider(tab_key),
                custom_system_prompt=message.get("customPrompt"),
            )
        except BusinessError as e:
            self._post({"type": "aiSummaryError", "tabKey": tab_key, "error": e.message, "code": e.code})
            return
        self._post({"type": "aiSummaryResult", "tabKey": tab_key, "summary": summary})

    def _handle_chat(self, message: Dict[str, Any]) -> None:
        history = [ConversationTurn.from_dict(t) for t in message.get("history") or []]
        source = self._begin("chat")
        try:
            text = self._service.chat(
                str(message.get("question") or ""),
                self._context_provider(None),
                history,
                on_chunk=lambda chunk: self._post({"type": "aiChatChunk", "text": chunk}),
                token=source.token,
                web_search=bool(message.get("webSearch")),
            )
        except BusinessError as e:
            self._post({"type": "aiChatError", "error": e.message, "code": e.code})
            return
        finally:
            self._end("chat", source)
        self._post({"type": "aiChatDone", "text": text})

    def _handle_agent(self, message: Dict[str, Any]) -> None:
        source = self._begin("agent")
        try:
            text = self._service.agent_analysis(
                str(message.get("mode") or "custom"),
                message.get("body"),
                self._context_provider(None),
                on_chunk=lambda chunk: self._post({"type": "aiAgentChunk", "text": chunk}),
                token=source.token,
                custom_system_prompt=message.get("systemPrompt"),
            )
        except BusinessError as e:
            self._post({"type": "aiAgentError", "error": e.message, "code": e.code})
            return
        finally:
            self._end("agent", source)
        self._post({"type": "aiAgentDone", "text": text})

    def _handle_set_model(self, message: Dict[str, Any]) -> None:
        purpose = str(message.get("purpose") or "")
        try:
            self._service.set_model(purpose, message.get("modelId"))
        except BusinessError as e:
            logger.warning("Failed to set model", extra={"extra": {"purpose": purpose, "error": e.message}})
            self._post({"type": "aiModelError", "purpose": purpose, "error": e.message, "code": e.code})
            return
        self._post_model_list()

    def _post_model_list(self) -> None:
        self._post(
            {
                "type": "aiModelList",
                "models": [m.to_dict() for m in self._service.list_models()],
                "assignments": self._service.get_model_assignments(),
                "provider": self._service.active_provider().value,
            }
        )

    # ---- cancellation bookkeeping ----

    def _begin(self, kind: str) -> CancellationTokenSource:
        source = CancellationTokenSource()
        with self._lock:
            previous = self._outstanding.get(kind)
            self._outstanding[kind] = source
        if previous is not None:
            previous.cancel()
        return source

    def _end(self, kind: str, source: CancellationTokenSource) -> None:
        with self._lock:
            if self._outstanding.get(kind) is source:
                del self._outstanding[kind]
