"""
Session storage with per-session serialization.

The store exclusively owns session objects: every read hands out an
independent copy and every write goes through ``put``, which checks the
version the caller started from. Combined with the per-session
``asyncio.Lock`` returned by ``lock()``, a turn is a read-modify-write
cycle that can neither lose another turn's update nor half-apply itself.

Lookups are two-level, as the router needs them:
    (customer_id, intent) -> session_id -> ConversationSession

Usage:
    store = InMemorySessionStore()
    session_id, session = await store.get_or_create("cust-1", "HOSPITAL_LOCATOR", "ask_admission")
    async with store.lock(session_id):
        session = await store.get(session_id)
        session.collected_data["needsAdmission"] = True
        await store.put(session_id, session)
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from journey_engine.conversation.state_machine import TransitionTrigger
from journey_engine.exceptions import SessionNotFound, StaleSessionError
from journey_engine.schemas.conversation_schema import (
    ConversationSession,
    SessionStatus,
    StageVisit,
)
from journey_engine.utils import new_session_id

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Keyed storage of conversation sessions."""

    @abstractmethod
    async def get_or_create(
        self, customer_id: str, intent: str, entry_stage_id: str
    ) -> tuple[str, ConversationSession]:
        """Return the active session for (customer, intent), creating one on miss."""

    @abstractmethod
    async def get(self, session_id: str) -> ConversationSession:
        """Raises:
            SessionNotFound: If the id is not stored.
        """

    @abstractmethod
    async def find(self, session_id: str) -> Optional[ConversationSession]:
        """Like ``get`` but returns None on a miss."""

    @abstractmethod
    async def put(self, session_id: str, session: ConversationSession) -> ConversationSession:
        """Replace stored state and return the stored copy with its new version.

        Raises:
            SessionNotFound: If the id is not stored.
            StaleSessionError: If ``session.version`` is not the stored version.
        """

    @abstractmethod
    async def clear(self, session_id: str) -> bool:
        """Remove all state for a session. Returns False if it was not stored."""

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock:
        """Mutual-exclusion lock serializing turns on one session."""

    @abstractmethod
    async def lookup(self, customer_id: str, intent: str) -> Optional[ConversationSession]:
        """Most recent session for (customer, intent), whatever its status."""

    @abstractmethod
    async def latest_for_customer(self, customer_id: str) -> Optional[ConversationSession]:
        """Session most recently returned by get_or_create for a customer, any intent."""

    @abstractmethod
    async def list_sessions(self, customer_id: Optional[str] = None) -> list[ConversationSession]:
        """All stored sessions, optionally for one customer, oldest first."""


class InMemorySessionStore(SessionStore):
    """
    Process-lifetime store backed by dicts.

    Distinct session ids never contend: each has its own lock, and the
    only shared lock guards session creation.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ConversationSession] = {}
        self._by_customer_intent: dict[tuple[str, str], str] = {}
        self._latest_by_customer: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._create_lock = asyncio.Lock()

    async def get_or_create(
        self, customer_id: str, intent: str, entry_stage_id: str
    ) -> tuple[str, ConversationSession]:
        async with self._create_lock:
            session_id = self._by_customer_intent.get((customer_id, intent))
            existing = self._sessions.get(session_id) if session_id else None
            if existing is not None and existing.is_active and existing.intent == intent:
                self._latest_by_customer[customer_id] = existing.session_id
                return existing.session_id, existing.snapshot()

            session = ConversationSession(
                session_id=new_session_id(),
                customer_id=customer_id,
                intent=intent,
                current_stage_id=entry_stage_id,
                stage_history=[
                    StageVisit(
                        stage_id=entry_stage_id,
                        trigger=TransitionTrigger.SESSION_STARTED.value,
                    )
                ],
            )
            self._sessions[session.session_id] = session
            self._by_customer_intent[(customer_id, intent)] = session.session_id
            self._latest_by_customer[customer_id] = session.session_id
            logger.info(
                "Created session %s for customer %s, intent %s",
                session.session_id, customer_id, intent,
            )
            return session.session_id, session.snapshot()

    async def get(self, session_id: str) -> ConversationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session.snapshot()

    async def find(self, session_id: str) -> Optional[ConversationSession]:
        session = self._sessions.get(session_id)
        return session.snapshot() if session is not None else None

    async def put(self, session_id: str, session: ConversationSession) -> ConversationSession:
        stored = self._sessions.get(session_id)
        if stored is None:
            raise SessionNotFound(session_id)
        if session.session_id != session_id:
            raise ValueError(
                f"Session id mismatch: put under {session_id} with {session.session_id}"
            )
        if session.version != stored.version:
            raise StaleSessionError(session_id, expected=stored.version, actual=session.version)

        updated = session.model_copy(deep=True, update={"version": stored.version + 1})
        self._sessions[session_id] = updated
        logger.debug("Stored session %s at version %d", session_id, updated.version)
        return updated.snapshot()

    async def clear(self, session_id: str) -> bool:
        if session_id not in self._sessions:
            return False
        async with self.lock(session_id):
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False
            key = (session.customer_id, session.intent)
            if self._by_customer_intent.get(key) == session_id:
                del self._by_customer_intent[key]
            if self._latest_by_customer.get(session.customer_id) == session_id:
                del self._latest_by_customer[session.customer_id]
        self._locks.pop(session_id, None)
        logger.info("Cleared session %s", session_id)
        return True

    def lock(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    async def lookup(self, customer_id: str, intent: str) -> Optional[ConversationSession]:
        session_id = self._by_customer_intent.get((customer_id, intent))
        return await self.find(session_id) if session_id else None

    async def latest_for_customer(self, customer_id: str) -> Optional[ConversationSession]:
        session_id = self._latest_by_customer.get(customer_id)
        return await self.find(session_id) if session_id else None

    async def list_sessions(self, customer_id: Optional[str] = None) -> list[ConversationSession]:
        sessions = [
            session.snapshot()
            for session in self._sessions.values()
            if customer_id is None or session.customer_id == customer_id
        ]
        return sorted(sessions, key=lambda s: s.created_at)

    def __len__(self) -> int:
        return len(self._sessions)


def count_by_status(sessions: list[ConversationSession]) -> dict[str, int]:
    """Tally sessions per status, for diagnostics."""
    counts = {status.value: 0 for status in SessionStatus}
    for session in sessions:
        counts[session.status.value] += 1
    return counts
