"""Gemini Provider 适配器。

本模块负责：

1. 将统一的 ChatMessage 列表转换为 Gemini REST 的 contents 结构
   （没有 system 角色：system/user/tool 都作为 "user"，assistant 作为 "model"）。
2. 调用 generateContent（非流式）或 streamGenerateContent?alt=sse（流式）。
3. 处理网络/限流/API 错误，以及 promptFeedback.blockReason 之类的模型拒答。
4. 把响应中的文本片段交给上层。

Gemini 不支持工具调用，GeminiAdapter.supports_tools 恒为 False。
"""

import json
from typing import Any, Dict, Iterable, Iterator, List, Optional

import httpx

from forge_core.config.settings import settings
from forge_core.domain.cancellation import CancellationToken
from forge_core.domain.exceptions import (
    ApiError,
    LanguageModelError,
    NetworkError,
    RateLimitError,
    ToolInvocationError,
    ValidationError,
)
from forge_core.domain.models import ChatMessage, ModelDescriptor, ModelSelector, ProviderKind, TextPart
from forge_core.domain.preferences import GEMINI_MODEL_KEY, PreferenceStore
from forge_core.providers.registry import DEFAULT_GEMINI_MODEL, GEMINI_CONFIG
from forge_core.tools.definitions import ToolDef


class GeminiClient:
    """Gemini REST 客户端。

    - generate_content: 非流式，返回完整文本。
    - stream_generate_content: 流式，逐段 yield 文本。
    """

    def __init__(self, cfg=settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = cfg

    def is_configured(self) -> bool:
        return bool(getattr(self._settings, "gemini_api_key", None))

    def generate_content(self, model_id: str, messages: List[ChatMessage], token: CancellationToken) -> str:
        self._require_key()
        token.raise_if_cancelled()
        payload = self._build_payload(model_id, messages)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                # 取消时关闭客户端，中断进行中的请求
                with token.bind(client.close):
                    resp = client.post(
                        f"{self._base_url()}/models/{model_id}:generateContent",
                        json=payload,
                        headers=self._headers(),
                    )
        except (httpx.RequestError, httpx.StreamError) as e:
            # 取消导致的连接关闭优先按取消处理；其余为 DNS 失败、连接超时等网络错误
            token.raise_if_cancelled()
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        token.raise_if_cancelled()
        self._raise_for_status(resp.status_code, resp.text)
        return "".join(self._parse_chunk(resp.json()))

    def stream_generate_content(
        self,
        model_id: str,
        messages: List[ChatMessage],
        token: CancellationToken,
    ) -> Iterable[str]:
        self._require_key()
        token.raise_if_cancelled()
        payload = self._build_payload(model_id, messages)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{self._base_url()}/models/{model_id}:streamGenerateContent",
                    params={"alt": "sse"},
                    json=payload,
                    headers=self._headers(),
                ) as resp, token.bind(resp.close):
                    if resp.status_code >= 400:
                        resp.read()
                        self._raise_for_status(resp.status_code, resp.text)
                    for line in resp.iter_lines():
                        token.raise_if_cancelled()
                        data_str = line.strip()
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        if not data_str or data_str == "[DONE]":
                            continue
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        for text in self._parse_chunk(payload_chunk):
                            yield text
        except (httpx.RequestError, httpx.StreamError) as e:
            token.raise_if_cancelled()
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        # 连接被关闭时读取也可能正常结束
        token.raise_if_cancelled()

    # ---- 辅助方法 ----

    def _require_key(self) -> None:
        if not self.is_configured():
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")

    def _base_url(self) -> str:
        return (getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self._settings.gemini_api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(self, model_id: str, messages: List[ChatMessage]) -> Dict[str, Any]:
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.content
        ]
        payload: Dict[str, Any] = {"contents": contents}
        model_cfg = GEMINI_CONFIG.models.get(model_id)
        if model_cfg:
            payload["generationConfig"] = {
                "temperature": model_cfg.default_temperature,
                "maxOutputTokens": model_cfg.max_tokens,
            }
        return payload

    @staticmethod
    def _raise_for_status(status_code: int, body: str) -> None:
        if status_code == 429:
            # 限流错误交给调用方做重试/退避
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if status_code >= 400:
            message = body
            try:
                err = json.loads(body).get("error") or {}
                message = err.get("message") or body
            except (json.JSONDecodeError, AttributeError):
                pass
            raise ApiError(code="API_ERROR", message=message, http_status=status_code)

    @staticmethod
    def _parse_chunk(data: Dict[str, Any]) -> Iterator[str]:
        feedback = data.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            raise LanguageModelError(
                code="Blocked",
                message=f"Prompt blocked by Gemini: {feedback['blockReason']}",
            )
        for candidate in data.get("candidates") or []:
            if candidate.get("finishReason") in ("SAFETY", "PROHIBITED_CONTENT"):
                raise LanguageModelError(
                    code="Blocked",
                    message=f"Response blocked by Gemini: {candidate['finishReason']}",
                )
            content = candidate.get("content") or {}
            for part in content.get("parts") or []:
                text = part.get("text")
                if text:
                    yield text
            # 只取第一个候选
            break


class GeminiAdapter:
    """基于 API Key 的远程 Provider：只支持流式文本，不支持工具调用。"""

    kind = ProviderKind.GEMINI
    supports_tools = False

    def __init__(self, client: GeminiClient, preferences: PreferenceStore, cfg=settings):
        self._client = client
        self._preferences = preferences
        self._settings = cfg

    def is_available(self) -> bool:
        return self._client.is_configured()

    def list_models(self) -> List[ModelDescriptor]:
        return GEMINI_CONFIG.descriptors()

    def select_model(self, selector: ModelSelector) -> Optional[ModelDescriptor]:
        for model in self.list_models():
            if selector.matches(model):
                return model
        return None

    def default_model(self) -> Optional[ModelDescriptor]:
        """先取用户配置的默认模型，再取硬编码的 gemini-2.5-flash。

        配置的默认模型不要求出现在静态目录里。
        """

        configured = self._preferences.get(GEMINI_MODEL_KEY) or getattr(self._settings, "gemini_model", "")
        model_id = (configured or "").strip() or DEFAULT_GEMINI_MODEL
        return self.select_model(ModelSelector(id=model_id)) or ModelDescriptor(
            id=model_id, name=model_id, vendor=GEMINI_CONFIG.vendor, family="gemini"
        )

    def complete(self, model: ModelDescriptor, messages: List[ChatMessage], token: CancellationToken) -> str:
        return self._client.generate_content(model.id, messages, token)

    def stream(
        self,
        model: ModelDescriptor,
        messages: List[ChatMessage],
        tools: Optional[List[ToolDef]],
        token: CancellationToken,
    ) -> Iterable[TextPart]:
        for text in self._client.stream_generate_content(model.id, messages, token):
            yield TextPart(text)

    def tools(self) -> List[ToolDef]:
        return []

    def invoke_tool(self, name: str, arguments: Dict[str, Any], token: CancellationToken) -> str:
        raise ToolInvocationError(code="TOOLS_UNSUPPORTED", message="Gemini provider does not support tools")
