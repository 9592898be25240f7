"""统一的对话与模型数据结构。

本模块定义了 AiService 在两个 Provider 之间共享的标准数据结构：

- ChatMessage: 一条发给 Provider 的消息（system/user/assistant/tool）。
- ConversationTurn: 调用方持有的历史对话轮次，只包含 user/assistant。
- TextPart: 流式响应中的一段文本；工具调用部分用 tools.definitions.ToolCall 表示。
- ModelDescriptor / ModelSelector: 模型描述与筛选条件。
- ProviderKind / Purpose: 当前 Provider 与模型用途。

所有 Provider 适配器都只依赖这些模型，并负责与各自 API 的格式互相转换。
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, TYPE_CHECKING, Union

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from forge_core.tools.definitions import ToolCall


# 发给 Provider 的消息角色
Role = Literal["system", "user", "assistant", "tool"]

# 调用方历史记录中的角色
TurnRole = Literal["user", "assistant"]


class ProviderKind(str, Enum):
    """当前生效的 Provider。由偏好与可用性推导，不做持久化。"""

    COPILOT = "copilot"
    GEMINI = "gemini"
    NONE = "none"


class Purpose(str, Enum):
    """模型用途，决定使用哪一个模型覆盖配置。"""

    SUMMARY = "summary"
    CHAT = "chat"
    AGENT = "agent"


@dataclass
class ChatMessage:
    """一条对话消息。

    - role: 消息角色。
    - content: 纯文本内容。
    - tool_calls: role 为 "assistant" 且模型触发工具调用时，保存本轮的工具调用列表。
    - tool_call_id: role 为 "tool" 时，用于关联某一次工具调用。
    """

    role: Role
    content: str
    tool_calls: Optional[List["ToolCall"]] = None
    tool_call_id: Optional[str] = None


@dataclass
class ConversationTurn:
    role: TurnRole
    content: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversationTurn":
        role = "user" if data.get("role") == "user" else "assistant"
        return cls(role=role, content=str(data.get("content") or ""))


@dataclass
class TextPart:
    """流式响应中的文本增量。"""

    value: str


@dataclass(frozen=True)
class ModelDescriptor:
    """可安全序列化给面板的模型描述。"""

    id: str
    name: str
    vendor: str
    family: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class ModelSelector:
    """select_model 的筛选条件，未设置的字段不参与匹配。"""

    id: Optional[str] = None
    vendor: Optional[str] = None
    family: Optional[str] = None

    def matches(self, model: ModelDescriptor) -> bool:
        if self.id is not None and model.id != self.id:
            return False
        if self.vendor is not None and model.vendor != self.vendor:
            return False
        if self.family is not None and model.family != self.family:
            return False
        return True


ResponsePart = Union[TextPart, "ToolCall"]
