"""Agno agent logic for LLM access.

Responsibilities:
    - Chat agent with OpenAI-compatible models and per-conversation history
    - Cancelable fragment stream feeding the stream controller
    - Conversation title generation
    - Extraction of facts about the user from their messages

Maintains clean separation from the HTTP layer.
"""

from relaychat.agent.analysis_agent import AnalysisService, get_analysis_service
from relaychat.agent.chat_agent import AgentService, UpstreamError, get_agent_service
from relaychat.agent.config import AgentConfig, get_agent_config

__all__ = [
    "AgentConfig",
    "AgentService",
    "AnalysisService",
    "UpstreamError",
    "get_agent_config",
    "get_agent_service",
    "get_analysis_service",
]
