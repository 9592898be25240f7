from forge_core.domain.models import ConversationTurn
from forge_core.prompts import AGENT_TEMPLATES, CHAT_WEB_SEARCH_CLAUSE, SUMMARY_SYSTEM_PROMPT, SUMMARY_TAB_PROMPTS
from forge_core.prompts.builder import (
    build_agent_messages,
    build_chat_messages,
    build_summary_messages,
    build_summary_prompt,
    resolve_agent_system_prompt,
)


def test_summary_tab_table_has_all_tabs():
    assert set(SUMMARY_TAB_PROMPTS) == {
        "stashes", "prs", "issues", "projects", "notes", "mattermost", "drive", "calendar", "wiki",
    }


def test_summary_prompt_known_and_unknown_tab():
    prompt = build_summary_prompt("prs", "PR #1 open")
    assert prompt.startswith(SUMMARY_TAB_PROMPTS["prs"])
    assert prompt.endswith("\n\nData:\nPR #1 open")
    generic = build_summary_prompt("builds", "x")
    assert generic.startswith("Summarize the user's builds data.")


def test_summary_custom_system_prompt_only_when_non_blank():
    assert build_summary_messages("prs", "d", "   ")[0].content == SUMMARY_SYSTEM_PROMPT
    msgs = build_summary_messages("prs", "d", "Be terse")
    assert [m.role for m in msgs] == ["system", "user"]
    assert msgs[0].content == "Be terse"


def test_chat_web_search_clause_gating():
    with_clause = build_chat_messages("q", "ctx", [], advertise_web_search=True)
    without = build_chat_messages("q", "ctx", [], advertise_web_search=False)
    assert CHAT_WEB_SEARCH_CLAUSE in with_clause[0].content
    assert CHAT_WEB_SEARCH_CLAUSE not in without[0].content


def test_chat_history_window_keeps_last_ten_in_order():
    history = [
        ConversationTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}") for i in range(15)
    ]
    msgs = build_chat_messages("latest?", "ctx", history)
    assert msgs[1].content == (
        "Here is the current workspace data:\n\nctx\n\nUse this data to answer the user's questions."
    )
    middle = msgs[2:-1]
    assert [m.content for m in middle] == [f"turn {i}" for i in range(5, 15)]
    assert middle[0].role == "assistant"
    assert msgs[-1].role == "user" and msgs[-1].content == "latest?"


def test_agent_system_prompt_resolution_order():
    assert resolve_agent_system_prompt("review", "Mine") == "Mine"
    assert resolve_agent_system_prompt("review", " ") == AGENT_TEMPLATES["review"]
    assert resolve_agent_system_prompt("unknown") == AGENT_TEMPLATES["custom"]


def test_agent_messages_extra_instructions_only_when_non_blank():
    msgs = build_agent_messages("agile", "  ", "ctx")
    assert len(msgs) == 2
    assert msgs[1].content == "Here is the complete workspace data to analyze:\n\nctx"
    msgs = build_agent_messages("agile", "focus on PRs", "ctx")
    assert msgs[2].content == "Additional instructions from the user:\nfocus on PRs"
