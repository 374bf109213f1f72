"""Agno agent service producing the upstream fragment stream.

Core module for the chatbot's model access.

Architecture Decisions (why we layer on top of Agno's built-ins):

1. **SQLite Storage** - Agno's Agent has no default persistence. Without explicit
   storage, session_id is ignored and every request is stateless. Each
   conversation id is used as the Agno session id, so the model sees the
   conversation's earlier turns without the caller rebuilding history.

2. **Singleton Pattern** - Agent initialization is expensive (model client,
   storage connection). The singleton reuses one agent across requests.

3. **Service Wrapper** - Decouples the API from Agno's interface. If Agno's API
   changes, we only fix one place.

4. **Fragment Generator** - Agno yields run events with metadata. We extract just
   the content strings, raise on run errors instead of passing error text off as
   model output, and close the Agno stream when the consumer goes away so the
   provider stops generating.
"""

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

from agno.agent import Agent
from agno.db.sqlite import SqliteDb
from agno.models.openai import OpenAIChat

from relaychat.agent.config import AgentConfig, get_agent_config
from relaychat.models.schemas import UserFact

logger = logging.getLogger(__name__)

# Store model session history in project data directory
_DATA_DIR = Path(__file__).parent.parent.parent / "data"
_SESSIONS_DB = _DATA_DIR / "agent_sessions.db"

_RUN_ERROR = "RunError"
_RUN_COMPLETED = "RunCompleted"


class UpstreamError(Exception):
    """Raised when the model provider fails during generation."""

    pass


def create_model(
    config: AgentConfig,
    *,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> OpenAIChat:
    """Create the OpenAI-compatible model client.

    Args:
        config: Agent configuration.
        temperature: Overrides the configured temperature.
        max_tokens: Overrides the configured token limit.

    Returns:
        Configured OpenAIChat model.
    """
    return OpenAIChat(
        id=config.model_name,
        api_key=config.api_key,
        base_url=config.base_url,
        temperature=config.temperature if temperature is None else temperature,
        max_tokens=config.max_tokens if max_tokens is None else max_tokens,
    )


class AgentService:
    """Service for managing the Agno chat agent.

    Wraps Agno's Agent with:
    - Persistent SQLite storage for per-conversation model history
    - Singleton lifecycle management
    - Cancelable fragment stream for the stream controller
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        """Initialize the agent service.

        Args:
            config: Optional agent configuration.
                    Loads from environment if not provided.
        """
        self._config = config or get_agent_config()
        self._storage = self._create_storage()
        self._agent = self._create_agent()

    def _create_storage(self) -> SqliteDb:
        """Create SQLite storage for model session history.

        Returns:
            Configured SqliteDb instance.
        """
        _DATA_DIR.mkdir(parents=True, exist_ok=True)
        return SqliteDb(
            db_file=str(_SESSIONS_DB),
            session_table="chat_sessions",
        )

    def _create_agent(self) -> Agent:
        """Create the Agno agent instance.

        Returns:
            Configured Agent with OpenAI model and SQLite storage.
        """
        return Agent(
            model=create_model(self._config),
            db=self._storage,
            description="A helpful AI assistant.",
            instructions=[
                "You are a helpful AI assistant.",
                "You can use markdown for formatting your responses.",
                "Use the known facts about the user when they are relevant.",
            ],
            add_history_to_context=True,
            num_history_messages=self._config.history_messages,
            # Output as markdown for rich formatting in UI
            markdown=True,
        )

    async def stream_response(
        self,
        message: str,
        session_id: str,
        user_id: str | None = None,
        context: list[UserFact] | None = None,
    ) -> AsyncGenerator[str]:
        """Stream response fragments for a message.

        Nothing is sent to the provider until the first fragment is requested.
        Closing the generator closes the provider stream.

        Args:
            message: The user's message.
            session_id: Conversation id, used for history tracking.
            user_id: Owner of the conversation.
            context: Known facts about the user.

        Yields:
            Response text fragments as they arrive.

        Raises:
            UpstreamError: If the model run fails.
        """
        facts = [{"category": f.category, "info": f.info} for f in context or []]
        response_stream = self._agent.arun(
            message,
            session_id=session_id,
            user_id=user_id,
            stream=True,
            dependencies={"user_facts": facts},
            add_dependencies_to_context=True,
        )

        try:
            async for chunk in response_stream:
                event = getattr(chunk, "event", None)
                if event == _RUN_ERROR:
                    raise UpstreamError(str(getattr(chunk, "content", None) or "Model run failed"))
                # The completion event repeats the whole response
                if event == _RUN_COMPLETED:
                    continue
                content = getattr(chunk, "content", None)
                if isinstance(content, str) and content:
                    yield content
        except UpstreamError:
            raise
        except Exception as e:
            logger.error(f"Model stream failed for session {session_id}: {e}")
            raise UpstreamError(str(e)) from e
        finally:
            aclose = getattr(response_stream, "aclose", None)
            if aclose is not None:
                await aclose()


# Module-level singleton instance
_agent_service: AgentService | None = None


def get_agent_service() -> AgentService:
    """Get or create the global agent service.

    Uses singleton pattern for resource efficiency.

    Returns:
        The AgentService instance.
    """
    global _agent_service
    if _agent_service is None:
        _agent_service = AgentService()
    return _agent_service
