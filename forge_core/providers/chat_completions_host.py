"""基于 OpenAI 兼容 chat/completions 端点的 LanguageModelHost 实现。

- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <copilot_api_key>
- 只使用流式接口（stream=true，SSE）。文本增量立即以 TextPart 产出；
  tool_calls 增量按 index 累积，流结束后按 index 顺序以 ToolCall 产出。
- 工具注册表由 LocalToolRegistry 提供。
"""

import json
from typing import Any, Dict, Iterable, List, Optional

import httpx

from forge_core.config.settings import settings
from forge_core.domain.cancellation import CancellationToken
from forge_core.domain.exceptions import ApiError, LanguageModelError, NetworkError, RateLimitError, ValidationError
from forge_core.domain.models import ChatMessage, ModelDescriptor, ModelSelector, ResponsePart, TextPart
from forge_core.providers.registry import COPILOT_CONFIG
from forge_core.tools.definitions import ToolCall, ToolDef
from forge_core.tools.executor import LocalToolRegistry

# HTTP 状态码 → 语言模型错误码
_LM_ERROR_CODES = {401: "NoPermissions", 403: "NoPermissions", 404: "NotFound"}


class ChatCompletionsHost:
    """默认的宿主实现。"""

    def __init__(self, cfg=settings, registry: Optional[LocalToolRegistry] = None):
        self._settings = cfg
        self._registry = registry or LocalToolRegistry()

    @property
    def registry(self) -> LocalToolRegistry:
        return self._registry

    @property
    def tools(self) -> List[ToolDef]:
        return self._registry.definitions

    def is_available(self) -> bool:
        return bool(getattr(self._settings, "copilot_api_key", None))

    def select_chat_models(self, selector: ModelSelector) -> List[ModelDescriptor]:
        return [m for m in COPILOT_CONFIG.descriptors() if selector.matches(m)]

    def invoke_tool(self, name: str, arguments: Dict[str, Any], token: CancellationToken) -> str:
        return self._registry.execute(name, arguments, token)

    # ---- 流式 ----

    def send_request(
        self,
        model_id: str,
        messages: List[ChatMessage],
        tools: Optional[List[ToolDef]],
        token: CancellationToken,
    ) -> Iterable[ResponsePart]:
        if not self.is_available():
            raise ValidationError(code="MISSING_API_KEY", message="COPILOT_API_KEY not set")
        payload = self._build_payload(model_id, messages, tools)
        pending: Dict[int, Dict[str, Any]] = {}
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                base = getattr(self._settings, "copilot_base_url", None) or COPILOT_CONFIG.base_url
                with client.stream(
                    "POST",
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._settings.copilot_api_key}",
                        "Content-Type": "application/json",
                    },
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
                            chunk = json.loads(data_str)
                        except json.JSONDecodeError:
                            continue
                        for text in self._consume_chunk(chunk, pending):
                            yield TextPart(text)
        except (httpx.RequestError, httpx.StreamError) as e:
            # 取消时 bind 关闭了连接，读取失败按取消处理
            token.raise_if_cancelled()
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        token.raise_if_cancelled()

        for idx in sorted(pending):
            call = pending[idx]
            yield ToolCall(
                id=call["id"] or f"tool_call_{idx}",
                name=call["name"],
                arguments=self._parse_arguments(call["arguments"]),
            )

    # ---- 辅助方法 ----

    def _consume_chunk(self, data: Dict[str, Any], pending: Dict[int, Dict[str, Any]]) -> List[str]:
        """解析一个 SSE 数据块：返回文本增量，并把 tool_calls 增量合并进 pending。"""

        texts: List[str] = []
        for ch in data.get("choices") or []:
            if ch.get("finish_reason") == "content_filter":
                raise LanguageModelError(code="Blocked", message="Response was filtered by the model provider")
            delta = ch.get("delta") or {}
            content = delta.get("content")
            if content:
                texts.append(content)
            for i, call in enumerate(delta.get("tool_calls") or []):
                idx = call.get("index", i)
                slot = pending.setdefault(idx, {"id": "", "name": "", "arguments": ""})
                if call.get("id"):
                    slot["id"] = call["id"]
                func = call.get("function") or {}
                if func.get("name"):
                    slot["name"] += func["name"]
                args = func.get("arguments")
                if isinstance(args, dict):
                    slot["arguments"] = json.dumps(args, ensure_ascii=False)
                elif args:
                    slot["arguments"] += args
        return texts

    def _build_payload(
        self,
        model_id: str,
        messages: List[ChatMessage],
        tools: Optional[List[ToolDef]],
    ) -> Dict[str, Any]:
        model_cfg = COPILOT_CONFIG.models.get(model_id)
        payload: Dict[str, Any] = {
            "model": model_id,
            "messages": [self._message_to_payload(m) for m in messages],
            "stream": True,
        }
        if model_cfg:
            payload["temperature"] = model_cfg.default_temperature
            payload["max_tokens"] = model_cfg.max_tokens
        if tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in tools]
            payload["tool_choice"] = "auto"
        return payload

    def _message_to_payload(self, message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role}
        if message.content or not message.tool_calls:
            payload["content"] = message.content
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False),
                    },
                }
                for call in message.tool_calls
            ]
        if message.tool_call_id:
            payload["tool_call_id"] = message.tool_call_id
        return payload

    def _serialize_tool(self, tool: ToolDef) -> Dict[str, Any]:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in tool.params.items():
            schema = param.schema or {"type": "string"}
            if param.description:
                schema = {**schema, "description": param.description}
            properties[name] = schema
            if param.required:
                required.append(name)
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    @staticmethod
    def _raise_for_status(status_code: int, body: str) -> None:
        if status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Copilot rate limit", http_status=429)
        message = body
        err_code = None
        try:
            err = json.loads(body).get("error") or {}
            message = err.get("message") or body
            err_code = err.get("code")
        except (json.JSONDecodeError, AttributeError):
            pass
        if err_code == "content_filter":
            raise LanguageModelError(code="Blocked", message=message, http_status=status_code)
        if status_code in _LM_ERROR_CODES:
            raise LanguageModelError(code=_LM_ERROR_CODES[status_code], message=message, http_status=status_code)
        raise ApiError(code="API_ERROR", message=message, http_status=status_code)

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str) and raw.strip():
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
            return parsed if isinstance(parsed, dict) else {"_raw": raw}
        return {}
