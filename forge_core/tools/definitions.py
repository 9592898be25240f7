"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 描述宿主暴露给模型的工具注册表（ToolDef / ToolParam）。
- 在聊天工具轮次中保存和回填模型触发的工具调用（ToolCall / ToolResult）。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """宿主工具注册表中的一项。"""

    name: str
    description: str
    params: Dict[str, ToolParam] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求（流式响应中的工具调用部分）。"""

    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class ToolResult:
    """工具执行结果；失败时 error_text 有值，同样回填给模型。"""

    call_id: str
    content: str = ""
    error_text: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error_text is not None

    @property
    def text(self) -> str:
        if self.error_text is not None:
            return f"Error: {self.error_text}"
        return self.content
