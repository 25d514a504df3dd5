import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, List

from ..models import Session, utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory conversation sessions keyed by session id.

    Sessions live only in process memory; a restart loses them. Idle sessions
    are removed by `sweep`, which `run_sweeper` calls on a fixed interval.
    """

    def __init__(
        self,
        system_prompt_factory: Callable[[], str],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._system_prompt_factory = system_prompt_factory
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def resolve(self, session_id: str | None = None) -> Session:
        """Return the session for session_id, creating it if it does not exist.

        Args:
            session_id: Existing or client-chosen session id. A new uuid4 is
                generated when omitted.

        Returns:
            Session: Session whose first message is the system prompt.
        """
        sid = session_id or str(uuid.uuid4())
        session = self._sessions.get(sid)
        if session is None:
            now = self._clock()
            session = Session(
                session_id=sid,
                messages=[{"role": "system", "content": self._system_prompt_factory()}],
                created_at=now,
                last_activity=now,
            )
            self._sessions[sid] = session
            logger.info("Created session %s (active sessions: %d)", sid, len(self._sessions))
        return session

    def touch(self, session: Session) -> None:
        session.last_activity = self._clock()

    def sweep(self, now: datetime, max_idle: timedelta) -> List[str]:
        """Remove every session idle for longer than max_idle.

        Returns:
            List[str]: Ids of the removed sessions.
        """
        cutoff = now - max_idle
        expired = [
            sid for sid, session in list(self._sessions.items())
            if session.last_activity < cutoff
        ]
        for sid in expired:
            self._sessions.pop(sid, None)
        if expired:
            logger.info(
                "Swept %d idle sessions (active sessions: %d)",
                len(expired),
                len(self._sessions),
            )
        return expired

    async def run_sweeper(self, interval: timedelta, max_idle: timedelta) -> None:
        """Sweep idle sessions every interval until cancelled."""
        logger.debug(
            "Session sweeper started: interval=%ss max_idle=%ss",
            interval.total_seconds(),
            max_idle.total_seconds(),
        )
        while True:
            await asyncio.sleep(interval.total_seconds())
            self.sweep(self._clock(), max_idle)
