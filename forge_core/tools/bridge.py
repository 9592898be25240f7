"""Tool Bridge：在聊天工具轮次中解析网页搜索工具并代表模型调用工具。

只是对当前 Provider 工具原语的薄封装；调用失败时直接抛出，
由 flows.tool_loop 把错误转换成文本形式的工具结果。
"""

from typing import Any, Dict, Optional

from forge_core.domain.cancellation import CancellationToken
from forge_core.providers.base import ProviderAdapter
from forge_core.tools.definitions import ToolDef

WEB_SEARCH_NAME_PATTERNS = ("websearch", "web_search")
WEB_SEARCH_EXACT_NAME = "copilot_websearch"
WEB_SEARCH_TAG_PATTERNS = ("search", "web")


class ToolBridge:
    def __init__(self, adapter: ProviderAdapter):
        self._adapter = adapter

    def find_web_search_tool(self) -> Optional[ToolDef]:
        """先按名称匹配，再按标签匹配；都没有则返回 None。"""

        tools = self._adapter.tools()
        for tool in tools:
            name = tool.name.lower()
            if any(p in name for p in WEB_SEARCH_NAME_PATTERNS) or name == WEB_SEARCH_EXACT_NAME:
                return tool
        for tool in tools:
            if any(p in tag for tag in tool.tags for p in WEB_SEARCH_TAG_PATTERNS):
                return tool
        return None

    def invoke(self, name: str, arguments: Dict[str, Any], token: CancellationToken) -> str:
        token.raise_if_cancelled()
        return self._adapter.invoke_tool(name, arguments, token)
