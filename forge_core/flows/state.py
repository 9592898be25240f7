"""State definition for the chat tool-round graph."""

from __future__ import annotations

from typing import List, Optional, TypedDict

from forge_core.domain.models import ChatMessage
from forge_core.tools.definitions import ToolCall, ToolDef


class ToolLoopState(TypedDict, total=False):
    """State shared across LangGraph nodes.

    - messages: 累积发送给模型的消息（含 assistant 工具调用与 tool 结果）。
    - tools: 本次请求声明给模型的工具；为空时不声明工具。
    - rounds: 已发送的请求数。
    - pending_calls: 上一轮模型触发、尚未执行的工具调用。
    - round_text: 上一轮转发的文本，与 pending_calls 一起写入 assistant 消息。
    - pieces: 所有轮次中已转发给 on_chunk 的文本片段。
    """

    messages: List[ChatMessage]
    tools: Optional[List[ToolDef]]
    rounds: int
    pending_calls: List[ToolCall]
    round_text: str
    pieces: List[str]
