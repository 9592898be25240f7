"""LangGraph construction and node implementations for the chat tool-round loop.

图结构：

    round ──(有待执行工具调用且未超出轮次)──▶ tools ──▶ round
      └──(无工具调用 / 轮次用尽)──▶ END

- round 节点：带工具集发送一次流式请求；文本立即转发给 on_chunk，工具调用只收集不转发。
  最后一轮被丢弃的工具调用不会写入 messages。
- tools 节点：追加一条 assistant 消息（本轮文本 + 工具调用），
  再逐个顺序调用工具，结果（包括失败）以 tool 消息回填。

最多 MAX_TOOL_ROUNDS 轮工具执行，即最多 MAX_TOOL_ROUNDS + 1 次请求。
"""

from __future__ import annotations

from typing import Callable, List, Optional

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from forge_core.domain.cancellation import CancellationToken
from forge_core.domain.exceptions import BusinessError, RequestCancelledError
from forge_core.domain.models import ChatMessage, ModelDescriptor, TextPart
from forge_core.flows.state import ToolLoopState
from forge_core.infrastructure.logging.logger import logger
from forge_core.providers.base import ProviderAdapter
from forge_core.tools.bridge import ToolBridge
from forge_core.tools.definitions import ToolCall, ToolDef, ToolResult

MAX_TOOL_ROUNDS = 5


def round_node(
    state: ToolLoopState,
    adapter: ProviderAdapter,
    model: ModelDescriptor,
    on_chunk: Callable[[str], None],
    token: CancellationToken,
) -> ToolLoopState:
    state["rounds"] = state.get("rounds", 0) + 1
    logger.info(
        "tool_loop.round.start",
        extra={"extra": {"round": state["rounds"], "messages": len(state["messages"])}},
    )
    round_text: List[str] = []
    calls: List[ToolCall] = []
    for part in adapter.stream(model, state["messages"], state.get("tools"), token):
        if isinstance(part, TextPart):
            round_text.append(part.value)
            state["pieces"].append(part.value)
            on_chunk(part.value)
        elif isinstance(part, ToolCall):
            calls.append(part)
    state["round_text"] = "".join(round_text)
    state["pending_calls"] = calls
    logger.info(
        "tool_loop.round.end",
        extra={"extra": {"round": state["rounds"], "tool_calls": [c.name for c in calls]}},
    )
    return state


def tools_node(state: ToolLoopState, bridge: ToolBridge, token: CancellationToken) -> ToolLoopState:
    calls = list(state.get("pending_calls") or [])
    if calls:
        state["messages"].append(
            ChatMessage(role="assistant", content=state.get("round_text", ""), tool_calls=calls)
        )
    for call in calls:
        try:
            result = ToolResult(call_id=call.id, content=bridge.invoke(call.name, call.arguments, token))
        except RequestCancelledError:
            raise
        except BusinessError as e:
            result = ToolResult(call_id=call.id, error_text=e.message)
        except Exception as e:  # 工具实现抛出的任意异常都回填给模型
            result = ToolResult(call_id=call.id, error_text=str(e))
        if result.is_error:
            logger.warning(
                "tool_loop.tool.failed",
                extra={"extra": {"tool": call.name, "call_id": call.id, "error": result.error_text}},
            )
        else:
            logger.info("tool_loop.tool.done", extra={"extra": {"tool": call.name, "call_id": call.id}})
        state["messages"].append(ChatMessage(role="tool", content=result.text, tool_call_id=call.id))
    state["pending_calls"] = []
    return state


def make_router(max_rounds: int) -> Callable[[ToolLoopState], str]:
    def router(state: ToolLoopState) -> str:
        if not state.get("pending_calls"):
            return "end"
        if state.get("rounds", 0) > max_rounds:
            logger.warning(
                "Tool round budget exhausted",
                extra={
                    "extra": {
                        "rounds": state.get("rounds", 0),
                        "dropped_calls": [c.name for c in state["pending_calls"]],
                    }
                },
            )
            return "end"
        return "tools"

    return router


def build_tool_loop_graph(
    adapter: ProviderAdapter,
    model: ModelDescriptor,
    on_chunk: Callable[[str], None],
    token: CancellationToken,
    max_rounds: int = MAX_TOOL_ROUNDS,
) -> CompiledStateGraph:
    bridge = ToolBridge(adapter)
    graph = StateGraph(ToolLoopState)
    graph.add_node("round", lambda s: round_node(s, adapter, model, on_chunk, token))
    graph.add_node("tools", lambda s: tools_node(s, bridge, token))
    graph.set_entry_point("round")
    graph.add_conditional_edges("round", make_router(max_rounds), {"tools": "tools", "end": END})
    graph.add_edge("tools", "round")
    return graph.compile()


def run_tool_loop(
    adapter: ProviderAdapter,
    model: ModelDescriptor,
    messages: List[ChatMessage],
    tools: Optional[List[ToolDef]],
    on_chunk: Callable[[str], None],
    token: CancellationToken,
    max_rounds: int = MAX_TOOL_ROUNDS,
) -> str:
    """执行宿主路径的工具轮次循环，返回所有轮次累积文本（已 trim）。

    messages 会被原地追加 assistant/tool 消息。
    """

    max_rounds = max(0, min(max_rounds, MAX_TOOL_ROUNDS))
    graph = build_tool_loop_graph(adapter, model, on_chunk, token, max_rounds)
    state: ToolLoopState = {
        "messages": messages,
        "tools": tools or None,
        "rounds": 0,
        "pending_calls": [],
        "round_text": "",
        "pieces": [],
    }
    # 每轮最多经过 round + tools 两个节点
    result = graph.invoke(state, {"recursion_limit": 2 * max_rounds + 4})
    return "".join(result.get("pieces") or []).strip()
