"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取提示词文本：
- summary_system.md / chat_system.md / chat_web_search.md：摘要与聊天的系统提示词。
- agent_<template>.md：Agent 分析模板（agile、review、activity、custom）。
- summary_tabs.yaml：各数据页签的摘要指令表。

模板表在导入时加载，运行期只读。
"""

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping

import yaml


PROMPTS_DIR = Path(__file__).resolve().parent

AGENT_TEMPLATE_IDS = ("agile", "review", "activity", "custom")
CUSTOM_TEMPLATE_ID = "custom"

# 未在 summary_tabs.yaml 中定义的页签使用这条通用指令
GENERIC_SUMMARY_INSTRUCTION = (
    "Summarize the user's {key} data. "
    "Focus on what needs attention, what's actionable, and key counts."
)


def load_system_prompt(name: str, locale: str = "en") -> str:
    """读取 prompts/<locale>/<name>.md，去掉首尾空行。"""

    fname = PROMPTS_DIR / locale / f"{name}.md"
    return fname.read_text(encoding="utf-8").strip("\n")


def load_summary_tab_prompts(locale: str = "en") -> Dict[str, str]:
    data = yaml.safe_load((PROMPTS_DIR / locale / "summary_tabs.yaml").read_text(encoding="utf-8")) or {}
    return {str(k): str(v).strip() for k, v in data.items()}


AGENT_TEMPLATES: Mapping[str, str] = MappingProxyType(
    {tid: load_system_prompt(f"agent_{tid}") for tid in AGENT_TEMPLATE_IDS}
)

SUMMARY_TAB_PROMPTS: Mapping[str, str] = MappingProxyType(load_summary_tab_prompts())

SUMMARY_SYSTEM_PROMPT = load_system_prompt("summary_system")
CHAT_SYSTEM_PROMPT = load_system_prompt("chat_system")
CHAT_WEB_SEARCH_CLAUSE = load_system_prompt("chat_web_search")
