"""AI 编排服务核心模块。

对面板暴露三种请求形态：
- summarize：单页签数据的一次性摘要（非流式，不带工具）。
- chat：基于工作区数据的多轮问答（流式；宿主 Provider 支持工具轮次与网页搜索）。
- agent_analysis：基于模板的深度分析（流式，不带工具）。

每次请求的流程：解析 Provider → 解析模型（用途覆盖 → Provider 默认回退链）
→ 构造提示词 → 调用适配器。执行器只根据 adapter.supports_tools 分支，
不判断 Provider 身份。
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from forge_core.config.settings import settings
from forge_core.domain.cancellation import CancellationToken, ensure_token
from forge_core.domain.exceptions import (
    AiRequestError,
    LanguageModelError,
    NoModelAvailableError,
    NoProviderAvailableError,
    ProviderTransportError,
)
from forge_core.domain.models import ConversationTurn, ModelDescriptor, ProviderKind, Purpose, TextPart
from forge_core.engine.model_store import ModelAssignmentStore
from forge_core.engine.resolver import ProviderResolver
from forge_core.flows.tool_loop import MAX_TOOL_ROUNDS, run_tool_loop
from forge_core.infrastructure.logging.logger import logger
from forge_core.prompts.builder import build_agent_messages, build_chat_messages, build_summary_messages
from forge_core.providers.base import ProviderAdapter
from forge_core.tools.bridge import ToolBridge

NO_MODEL_MESSAGES = {
    ProviderKind.COPILOT: "No AI model available. Make sure GitHub Copilot is installed and signed in.",
    ProviderKind.GEMINI: "No AI model available. Check your Gemini API key and model configuration.",
}

ChunkCallback = Callable[[str], None]


class AiService:
    def __init__(
        self,
        resolver: ProviderResolver,
        model_store: ModelAssignmentStore,
        max_history_turns: Optional[int] = None,
        max_tool_rounds: Optional[int] = None,
    ):
        self._resolver = resolver
        self._model_store = model_store
        self._max_history_turns = (
            max_history_turns if max_history_turns is not None else getattr(settings, "max_history_turns", 10)
        )
        rounds = max_tool_rounds if max_tool_rounds is not None else getattr(settings, "max_tool_rounds", MAX_TOOL_ROUNDS)
        self._max_tool_rounds = min(rounds, MAX_TOOL_ROUNDS)

    # ---- 查询与配置 ----

    def active_provider(self) -> ProviderKind:
        return self._resolver.active_provider()

    def is_available(self) -> bool:
        return self._resolver.is_available()

    def list_models(self) -> List[ModelDescriptor]:
        """当前 Provider 的模型列表；没有可用 Provider 时为空。"""

        adapter = self._resolver.adapter_for(self.active_provider())
        if adapter is None:
            return []
        return adapter.list_models()

    def set_model(self, purpose: Union[Purpose, str], model_id: Optional[str]) -> None:
        self._model_store.set_model(purpose, model_id)

    def get_model_assignments(self) -> Dict[str, str]:
        return self._model_store.get_model_assignments()

    # ---- 三种请求形态 ----

    def summarize(
        self,
        tab_key: str,
        context_data: str,
        custom_system_prompt: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> str:
        token = ensure_token(token)
        log_ctx = self._new_log_ctx("summary", tab_key=tab_key)
        with self._translate_errors(log_ctx):
            adapter, model = self._prepare(Purpose.SUMMARY, log_ctx)
            messages = build_summary_messages(tab_key, context_data, custom_system_prompt)
            start = time.time()
            self._log(logging.INFO, "Provider call start", log_ctx, messages=len(messages))
            text = adapter.complete(model, messages, token).strip()
            self._log(
                logging.INFO,
                "Provider call done",
                log_ctx,
                chars=len(text),
                duration_ms=int((time.time() - start) * 1000),
            )
            return text

    def chat(
        self,
        question: str,
        context_data: str,
        history: Sequence[ConversationTurn],
        on_chunk: ChunkCallback,
        token: Optional[CancellationToken] = None,
        web_search: bool = False,
    ) -> str:
        token = ensure_token(token)
        log_ctx = self._new_log_ctx("chat", web_search=web_search)
        with self._translate_errors(log_ctx):
            adapter, model = self._prepare(Purpose.CHAT, log_ctx)
            advertise = web_search and adapter.supports_tools
            messages = build_chat_messages(
                question,
                context_data,
                history,
                advertise_web_search=advertise,
                history_window=self._max_history_turns,
            )
            start = time.time()
            self._log(
                logging.INFO,
                "Provider call start",
                log_ctx,
                messages=len(messages),
                history_turns=len(history),
            )
            if adapter.supports_tools:
                tools = None
                if web_search:
                    tool = ToolBridge(adapter).find_web_search_tool()
                    if tool is None:
                        self._log(logging.INFO, "No web search tool available", log_ctx)
                    else:
                        tools = [tool]
                        self._log(logging.INFO, "Web search tool resolved", log_ctx, tool=tool.name)
                text = run_tool_loop(adapter, model, messages, tools, on_chunk, token, self._max_tool_rounds)
            else:
                text = self._stream_text(adapter, model, messages, on_chunk, token)
            self._log(
                logging.INFO,
                "Provider call done",
                log_ctx,
                chars=len(text),
                duration_ms=int((time.time() - start) * 1000),
            )
            return text

    def agent_analysis(
        self,
        template: str,
        custom_prompt: Optional[str],
        context_data: str,
        on_chunk: ChunkCallback,
        token: Optional[CancellationToken] = None,
        custom_system_prompt: Optional[str] = None,
    ) -> str:
        token = ensure_token(token)
        log_ctx = self._new_log_ctx("agent", template=template)
        with self._translate_errors(log_ctx):
            adapter, model = self._prepare(Purpose.AGENT, log_ctx)
            messages = build_agent_messages(template, custom_prompt, context_data, custom_system_prompt)
            start = time.time()
            self._log(logging.INFO, "Provider call start", log_ctx, messages=len(messages))
            text = self._stream_text(adapter, model, messages, on_chunk, token)
            self._log(
                logging.INFO,
                "Provider call done",
                log_ctx,
                chars=len(text),
                duration_ms=int((time.time() - start) * 1000),
            )
            return text

    # ---- 内部实现 ----

    def _prepare(self, purpose: Purpose, log_ctx: Dict[str, Any]) -> Tuple[ProviderAdapter, ModelDescriptor]:
        kind = self._resolver.active_provider()
        adapter = self._resolver.adapter_for(kind)
        if adapter is None:
            self._log(logging.WARNING, "No AI provider available", log_ctx)
            raise NoProviderAvailableError()
        log_ctx["provider"] = kind.value
        model = self._model_store.resolve(purpose, adapter)
        if model is None:
            self._log(logging.WARNING, "No AI model available", log_ctx)
            raise NoModelAvailableError(NO_MODEL_MESSAGES[kind])
        log_ctx["model"] = model.id
        return adapter, model

    @staticmethod
    def _stream_text(
        adapter: ProviderAdapter,
        model: ModelDescriptor,
        messages: list,
        on_chunk: ChunkCallback,
        token: CancellationToken,
    ) -> str:
        pieces: List[str] = []
        for part in adapter.stream(model, messages, None, token):
            if isinstance(part, TextPart):
                pieces.append(part.value)
                on_chunk(part.value)
        return "".join(pieces).strip()

    @contextmanager
    def _translate_errors(self, log_ctx: Dict[str, Any]) -> Iterator[None]:
        """传输层错误包装为 AiRequestError；前置条件错误与取消原样抛出。"""

        try:
            yield
        except LanguageModelError as e:
            self._log(logging.ERROR, "Language model error", log_ctx, code=e.code, error=e.message)
            raise AiRequestError(code="AI_REQUEST_FAILED", message=f"AI request failed: {e.message}") from e
        except ProviderTransportError as e:
            self._log(logging.ERROR, "Provider request failed", log_ctx, code=e.code, error=e.message)
            raise AiRequestError(code="AI_REQUEST_FAILED", message=f"AI request failed: {e.message}") from e

    @staticmethod
    def _new_log_ctx(kind: str, **fields: Any) -> Dict[str, Any]:
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "request": kind}
        log_ctx.update(fields)
        return log_ctx

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
