"""
Maps an incoming (customer, intent) pair to the session that should
handle the turn.

Two policy questions are answered here rather than in the store:
- a customer switching intent mid-flow leaves an active session behind;
  ``orphan_policy`` decides whether it is abandoned or kept active.
- a customer writing again after a journey completed either starts over
  (``restart_completed``) or keeps talking to the completed session.
"""

import logging
from typing import Optional

from journey_engine.config import SessionConfig
from journey_engine.conversation.session_store import SessionStore
from journey_engine.schemas.conversation_schema import SessionStatus
from journey_engine.utils import utc_now

logger = logging.getLogger(__name__)


class SessionRouter:
    """Resolves the session id for a turn, creating a session when needed."""

    def __init__(self, store: SessionStore, config: Optional[SessionConfig] = None) -> None:
        self._store = store
        self._config = config or SessionConfig()

    async def resolve(self, customer_id: str, intent: str, entry_stage_id: str) -> str:
        await self._handle_orphan(customer_id, intent)

        previous = await self._store.lookup(customer_id, intent)
        if (
            previous is not None
            and previous.status == SessionStatus.COMPLETED
            and not self._config.restart_completed
        ):
            logger.debug("Routing to completed session %s", previous.session_id)
            return previous.session_id

        session_id, _ = await self._store.get_or_create(customer_id, intent, entry_stage_id)
        return session_id

    async def _handle_orphan(self, customer_id: str, intent: str) -> None:
        latest = await self._store.latest_for_customer(customer_id)
        if latest is None or latest.intent == intent or not latest.is_active:
            return

        if self._config.orphan_policy != "abandon":
            logger.info(
                "Customer %s switched from %s to %s; session %s left active",
                customer_id, latest.intent, intent, latest.session_id,
            )
            return

        async with self._store.lock(latest.session_id):
            session = await self._store.find(latest.session_id)
            if session is None or not session.is_active:
                return
            session.status = SessionStatus.ABANDONED
            session.updated_at = utc_now()
            await self._store.put(session.session_id, session)
        logger.info(
            "Customer %s switched from %s to %s; abandoned session %s",
            customer_id, latest.intent, intent, latest.session_id,
        )
