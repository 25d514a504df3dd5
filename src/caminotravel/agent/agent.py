import logging
from datetime import timedelta
from typing import Any, Dict

from ..errors import is_context_overflow
from ..models import DispatchResult, PromptResult, Session
from ..services.context_budget import truncate_session_messages
from ..services.llm import get_chat_model
from ..services.session_store import SessionStore
from ..settings import Settings, get_settings
from .dispatch import ToolDispatcher
from .prompt import build_system_prompt
from .tools import build_tool_registry

logger = logging.getLogger(__name__)


class TravelAgentService:
    """Orchestrates the travel assistant: sessions, context budget, tool dispatch."""

    def __init__(
        self,
        store: SessionStore,
        dispatcher: ToolDispatcher,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._settings = settings or get_settings()

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def dispatcher(self) -> ToolDispatcher:
        return self._dispatcher

    def session_count(self) -> int:
        return len(self._store)

    async def run_with_overflow_recovery(
        self, session: Session, user_message: Dict[str, Any]
    ) -> DispatchResult:
        """Run the dispatch loop once, retrying once on a context overflow.

        On overflow the session history is reset to the system message and
        the current user turn, then the loop runs one more time. A second
        failure propagates.

        Args:
            session: Session whose messages are sent to the model.
            user_message: The user turn being processed.

        Returns:
            DispatchResult: Outcome of the successful attempt.
        """
        try:
            return await self._dispatcher.run(session.messages)
        except Exception as e:
            if not is_context_overflow(e):
                raise
            logger.warning(
                "Context overflow in session %s, resetting history and retrying: %s",
                session.session_id,
                e,
            )

        session.messages = [session.messages[0], user_message]
        return await self._dispatcher.run(session.messages)

    async def process_prompt(self, prompt: str, session_id: str | None = None) -> PromptResult:
        """Handle one user prompt for a (possibly new) session.

        Args:
            prompt: User message text.
            session_id: Existing session id; a new session is created when
                omitted or unknown.

        Returns:
            PromptResult: Session id plus the first structured tool success
                payload, or the model's text when there was none.
        """
        session = self._store.resolve(session_id)
        async with session.lock:
            logger.info("Processing prompt for session %s", session.session_id)
            logger.debug("Prompt: %s", prompt[:200])

            user_message = {"role": "user", "content": prompt}
            session.messages.append(user_message)
            self._store.touch(session)

            session.messages = truncate_session_messages(
                session.messages,
                max_context_tokens=self._settings.max_context_tokens,
                max_tool_result_chars=self._settings.max_tool_result_chars,
                max_turns=self._settings.max_session_turns,
            )

            result = await self.run_with_overflow_recovery(session, user_message)

            session.messages.append({"role": "assistant", "content": result.text})
            self._store.touch(session)

        logger.info(
            "Session %s: %d rounds, %d tool calls, structured=%s",
            session.session_id,
            result.rounds,
            result.tool_calls_count,
            result.structured_result is not None,
        )
        return PromptResult(session_id=session.session_id, response=result.response)

    async def run_session_sweeper(self) -> None:
        """Periodically drop idle sessions; runs until cancelled."""
        await self._store.run_sweeper(
            interval=timedelta(seconds=self._settings.session_sweep_interval_seconds),
            max_idle=timedelta(seconds=self._settings.session_max_idle_seconds),
        )


def build_agent_service(settings: Settings | None = None) -> TravelAgentService:
    """Wire the service with the OpenAI model and the accommodation tools."""
    settings = settings or get_settings()
    dispatcher = ToolDispatcher(
        model=get_chat_model(),
        tools=build_tool_registry(),
        max_iterations=settings.max_iterations,
        model_timeout=settings.model_request_timeout_seconds,
        tool_timeout=settings.tool_request_timeout_seconds,
    )
    return TravelAgentService(
        store=SessionStore(system_prompt_factory=build_system_prompt),
        dispatcher=dispatcher,
        settings=settings,
    )


_SERVICE: TravelAgentService | None = None


def get_agent_service() -> TravelAgentService:
    """Return the process-wide agent service, building it on first use."""
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = build_agent_service()
    return _SERVICE


__all__ = [
    "TravelAgentService",
    "build_agent_service",
    "get_agent_service",
]
