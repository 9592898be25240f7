"""Forge Core 顶层包。

工作区面板的 AI 编排引擎：在宿主集成的 Copilot 与基于 API Key 的 Gemini
之间选择 Provider，按用途解析模型，构造提示词，
并执行摘要、聊天（含工具轮次）与 Agent 分析三种请求。
"""

from forge_core.agents.ai_service import AiService
from forge_core.api.service import AiMessageHandler, build_ai_service

__all__ = ["AiService", "AiMessageHandler", "build_ai_service"]
