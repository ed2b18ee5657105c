"""
Administrative operations on stored sessions.

Diagnostics (get, history, list) are read-only. ``clear_session`` and
``abandon_session`` are the only ways a session leaves normal turn
processing; both take the session lock so they never interleave with
a turn in flight.
"""

import logging
from typing import Optional

from journey_engine.conversation.session_store import SessionStore, count_by_status
from journey_engine.exceptions import SessionNotFound
from journey_engine.schemas.conversation_schema import (
    ConversationSession,
    SessionStatus,
    Turn,
)
from journey_engine.utils import utc_now

logger = logging.getLogger(__name__)


class SessionAdmin:
    def __init__(self, store: SessionStore) -> None:
        self._store = store

    async def get_session(self, session_id: str) -> ConversationSession:
        """Raises:
            SessionNotFound: If the id is not stored.
        """
        return await self._store.get(session_id)

    async def get_history(self, session_id: str) -> list[Turn]:
        session = await self._store.get(session_id)
        return list(session.history)

    async def list_sessions(
        self,
        customer_id: Optional[str] = None,
        status: Optional[SessionStatus] = None,
    ) -> list[ConversationSession]:
        sessions = await self._store.list_sessions(customer_id)
        if status is not None:
            sessions = [s for s in sessions if s.status == status]
        return sessions

    async def clear_session(self, session_id: str) -> None:
        """Remove every trace of a session.

        Raises:
            SessionNotFound: If the id is not stored.
        """
        if not await self._store.clear(session_id):
            raise SessionNotFound(session_id)
        logger.info("Session %s cleared by admin", session_id)

    async def abandon_session(self, session_id: str) -> ConversationSession:
        """Close an active session so the next query starts a new one.

        Completed and already-abandoned sessions are returned unchanged.

        Raises:
            SessionNotFound: If the id is not stored.
        """
        async with self._store.lock(session_id):
            session = await self._store.get(session_id)
            if not session.is_active:
                return session
            session.status = SessionStatus.ABANDONED
            session.updated_at = utc_now()
            stored = await self._store.put(session_id, session)
        logger.info("Session %s abandoned by admin", session_id)
        return stored

    async def get_stats(self) -> dict[str, int]:
        """Session counts per status."""
        sessions = await self._store.list_sessions()
        stats = count_by_status(sessions)
        stats["total"] = len(sessions)
        return stats
