"""Agno agents for conversation titles and user-fact extraction.

Both are single-shot, stateless runs. Their output is advisory: a failed or
unparseable response falls back to a default instead of failing the request
that triggered it.
"""

import json
import logging
import re

from agno.agent import Agent
from pydantic import BaseModel, TypeAdapter, ValidationError

from relaychat.agent.chat_agent import create_model
from relaychat.agent.config import AgentConfig, get_agent_config
from relaychat.models.schemas import UserFact

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class _FactDraft(BaseModel):
    category: str
    info: str


_FACT_LIST = TypeAdapter(list[_FactDraft])


def parse_facts(raw: str | None) -> list[UserFact]:
    """Parse the analysis agent's reply into facts.

    Expects a JSON array of ``{"category", "info"}`` objects, optionally
    wrapped in a markdown code fence.

    Args:
        raw: Model output.

    Returns:
        Parsed facts, or an empty list if the output is not a valid array.
    """
    if not raw or not raw.strip():
        return []
    text = _CODE_FENCE.sub("", raw.strip())
    try:
        drafts = _FACT_LIST.validate_json(text)
    except ValidationError as e:
        logger.warning(f"Discarding unparseable analysis response: {e.error_count()} errors")
        return []
    return [
        UserFact(category=d.category.strip(), info=d.info.strip())
        for d in drafts
        if d.category.strip() and d.info.strip()
    ]


def clean_title(raw: str | None) -> str:
    """Normalize a generated title, falling back to the default."""
    if not raw:
        return DEFAULT_TITLE
    title = raw.strip().strip("\"'").rstrip(".!?").strip()
    return title or DEFAULT_TITLE


class AnalysisService:
    """Service wrapping the topic and fact-extraction agents."""

    def __init__(self, config: AgentConfig | None = None) -> None:
        self._config = config or get_agent_config()
        self._topic_agent = Agent(
            model=create_model(self._config, temperature=0.3, max_tokens=10),
            instructions=[
                "Extract a concise 2-4 word topic from the user's message that "
                "captures the main subject.",
                "Return only the topic, no additional text or punctuation.",
            ],
        )
        self._facts_agent = Agent(
            model=create_model(self._config, temperature=0.1),
            instructions=[
                "You are an AI designed to extract personal information from messages.",
                "Look for new, factual information about the user that isn't already "
                "in their profile.",
                "Respond with ONLY a JSON array of objects with 'category' and 'info' "
                "fields, or an empty array if no new information is found.",
                'Example: [{"category": "Occupation", "info": "Software Engineer"}] or []',
                "Categories should be specific but reusable (e.g. Occupation, Location, "
                "Hobby, Family, Education). Use proper capitalization.",
                "Only extract factual, concrete information, not opinions or temporary states.",
            ],
        )

    async def generate_topic(self, message: str) -> str:
        """Generate a conversation title for the first message.

        Args:
            message: The user's first message.

        Returns:
            A short title, or "New Chat" if generation fails.
        """
        try:
            response = await self._topic_agent.arun(message)
        except Exception as e:
            logger.warning(f"Topic generation failed: {e}")
            return DEFAULT_TITLE
        return clean_title(response.content)

    async def extract_facts(self, message: str, known: list[UserFact]) -> list[UserFact]:
        """Extract facts about the user that are not already known.

        Args:
            message: The user's message.
            known: Facts already stored for the user.

        Returns:
            New facts found in the message.
        """
        profile = json.dumps([{"category": f.category, "info": f.info} for f in known])
        prompt = f"Current user info: {profile}\n\nMessage: {message}"
        response = await self._facts_agent.arun(prompt)
        facts = parse_facts(response.content)

        seen = {(f.category.lower(), f.info.lower()) for f in known}
        return [f for f in facts if (f.category.lower(), f.info.lower()) not in seen]


_analysis_service: AnalysisService | None = None


def get_analysis_service() -> AnalysisService:
    """Get or create the global analysis service.

    Returns:
        The AnalysisService instance.
    """
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService()
    return _analysis_service
