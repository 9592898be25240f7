"""Provider 抽象接口。

AiService 不直接依赖具体厂商，而是依赖 ProviderAdapter 协议：

- CopilotAdapter：宿主集成的 Provider，支持原生工具调用与流式 part（文本 + 工具调用）。
- GeminiAdapter：基于 API Key 的远程 Provider，只支持流式文本，不支持工具。

执行器只写一遍，用 supports_tools 这一能力位决定是否进入工具轮次循环，
而不是判断 Provider 的身份。
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from forge_core.domain.cancellation import CancellationToken
from forge_core.domain.models import ChatMessage, ModelDescriptor, ModelSelector, ProviderKind, ResponsePart
from forge_core.tools.definitions import ToolDef


class ProviderAdapter(Protocol):
    """Provider 能力适配器协议。

    - kind: 对应的 ProviderKind。
    - supports_tools: 是否支持原生工具调用。
    - is_available(): 当前环境下是否可用（宿主已集成 / API Key 已配置）。
    - list_models(): 当前可用的模型列表。
    - select_model(selector): 返回第一个匹配的模型，没有则 None。
    - default_model(): 该 Provider 的默认回退链结果。
    - complete(...): 一次性返回完整文本。
    - stream(...): 逐个产出 TextPart / ToolCall。
    - tools() / invoke_tool(...): 工具注册表与工具调用（不支持工具时为空 / 抛错）。
    """

    kind: ProviderKind
    supports_tools: bool

    def is_available(self) -> bool:
        ...

    def list_models(self) -> List[ModelDescriptor]:
        ...

    def select_model(self, selector: ModelSelector) -> Optional[ModelDescriptor]:
        ...

    def default_model(self) -> Optional[ModelDescriptor]:
        ...

    def complete(
        self,
        model: ModelDescriptor,
        messages: List[ChatMessage],
        token: CancellationToken,
    ) -> str:
        ...

    def stream(
        self,
        model: ModelDescriptor,
        messages: List[ChatMessage],
        tools: Optional[List[ToolDef]],
        token: CancellationToken,
    ) -> Iterable[ResponsePart]:
        ...

    def tools(self) -> List[ToolDef]:
        ...

    def invoke_tool(self, name: str, arguments: Dict[str, Any], token: CancellationToken) -> str:
        ...


class LanguageModelHost(Protocol):
    """宿主集成的语言模型能力。

    由嵌入面板的宿主进程提供；默认实现见 chat_completions_host.ChatCompletionsHost。
    send_request 产出的流中，文本为 TextPart，工具调用为 ToolCall。
    """

    @property
    def tools(self) -> Sequence[ToolDef]:
        ...

    def is_available(self) -> bool:
        ...

    def select_chat_models(self, selector: ModelSelector) -> List[ModelDescriptor]:
        ...

    def send_request(
        self,
        model_id: str,
        messages: List[ChatMessage],
        tools: Optional[List[ToolDef]],
        token: CancellationToken,
    ) -> Iterable[ResponsePart]:
        ...

    def invoke_tool(self, name: str, arguments: Dict[str, Any], token: CancellationToken) -> str:
        ...
