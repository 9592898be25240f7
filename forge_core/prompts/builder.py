"""三种请求形态的提示词构造，纯字符串拼装，不做 I/O。"""

from typing import List, Optional, Sequence

from forge_core.domain.models import ChatMessage, ConversationTurn
from forge_core.prompts import (
    AGENT_TEMPLATES,
    CHAT_SYSTEM_PROMPT,
    CHAT_WEB_SEARCH_CLAUSE,
    CUSTOM_TEMPLATE_ID,
    GENERIC_SUMMARY_INSTRUCTION,
    SUMMARY_SYSTEM_PROMPT,
    SUMMARY_TAB_PROMPTS,
)

HISTORY_WINDOW = 10


def _non_blank(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    stripped = text.strip()
    return stripped or None


# ---- 摘要 ----

def build_summary_prompt(tab_key: str, context_data: str) -> str:
    prompt = SUMMARY_TAB_PROMPTS.get(tab_key) or GENERIC_SUMMARY_INSTRUCTION.format(key=tab_key)
    return f"{prompt}\n\nData:\n{context_data}"


def build_summary_messages(
    tab_key: str,
    context_data: str,
    custom_system_prompt: Optional[str] = None,
) -> List[ChatMessage]:
    system_prompt = _non_blank(custom_system_prompt) or SUMMARY_SYSTEM_PROMPT
    return [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="user", content=build_summary_prompt(tab_key, context_data)),
    ]


# ---- 聊天 ----

def build_chat_system_prompt(advertise_web_search: bool) -> str:
    """advertise_web_search 仅在调用方要求联网且当前 Provider 支持工具时为 True。"""

    if advertise_web_search:
        return f"{CHAT_SYSTEM_PROMPT}\n{CHAT_WEB_SEARCH_CLAUSE}"
    return CHAT_SYSTEM_PROMPT


def trailing_window(history: Sequence[ConversationTurn], size: int = HISTORY_WINDOW) -> List[ConversationTurn]:
    if size <= 0:
        return []
    return list(history)[-size:]


def build_chat_messages(
    question: str,
    context_data: str,
    history: Sequence[ConversationTurn],
    advertise_web_search: bool = False,
    history_window: int = HISTORY_WINDOW,
) -> List[ChatMessage]:
    messages = [
        ChatMessage(role="system", content=build_chat_system_prompt(advertise_web_search)),
        ChatMessage(
            role="user",
            content=(
                f"Here is the current workspace data:\n\n{context_data}\n\n"
                "Use this data to answer the user's questions."
            ),
        ),
    ]
    for turn in trailing_window(history, history_window):
        role = "user" if turn.role == "user" else "assistant"
        messages.append(ChatMessage(role=role, content=turn.content))
    messages.append(ChatMessage(role="user", content=question))
    return messages


# ---- Agent 分析 ----

def resolve_agent_system_prompt(template: str, custom_system_prompt: Optional[str] = None) -> str:
    """自定义系统提示词 → 指定模板 → custom 模板。"""

    return (
        _non_blank(custom_system_prompt)
        or AGENT_TEMPLATES.get(template)
        or AGENT_TEMPLATES[CUSTOM_TEMPLATE_ID]
    )


def build_agent_messages(
    template: str,
    custom_prompt: Optional[str],
    context_data: str,
    custom_system_prompt: Optional[str] = None,
) -> List[ChatMessage]:
    messages = [
        ChatMessage(role="system", content=resolve_agent_system_prompt(template, custom_system_prompt)),
        ChatMessage(role="user", content=f"Here is the complete workspace data to analyze:\n\n{context_data}"),
    ]
    if _non_blank(custom_prompt):
        messages.append(
            ChatMessage(role="user", content=f"Additional instructions from the user:\n{custom_prompt}")
        )
    return messages
