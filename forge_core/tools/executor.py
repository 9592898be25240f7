from typing import Any, Callable, Dict, List, Optional

from forge_core.domain.cancellation import CancellationToken, ensure_token
from forge_core.domain.exceptions import ToolInvocationError
from .definitions import ToolDef


ToolFunc = Callable[[Dict[str, Any]], str]


class LocalToolRegistry:
    """进程内工具注册表，给 ChatCompletionsHost 提供 tools / invoke_tool。

    调用方通过 register 注册工具，例如把面板的网页搜索能力注册为 "web_search"。
    """

    def __init__(self) -> None:
        self._defs: Dict[str, ToolDef] = {}
        self._funcs: Dict[str, ToolFunc] = {}

    def register(self, tool: ToolDef, func: ToolFunc) -> None:
        self._defs[tool.name] = tool
        self._funcs[tool.name] = func

    def unregister(self, name: str) -> None:
        self._defs.pop(name, None)
        self._funcs.pop(name, None)

    @property
    def definitions(self) -> List[ToolDef]:
        return list(self._defs.values())

    def execute(self, name: str, arguments: Dict[str, Any], token: Optional[CancellationToken] = None) -> str:
        ensure_token(token).raise_if_cancelled()
        func = self._funcs.get(name)
        if not func:
            raise ToolInvocationError(code="TOOL_NOT_REGISTERED", message=f"Tool not registered: {name}")
        try:
            return str(func(arguments))
        except ToolInvocationError:
            raise
        except Exception as exc:
            raise ToolInvocationError(code="TOOL_FAILED", message=str(exc) or type(exc).__name__) from exc
