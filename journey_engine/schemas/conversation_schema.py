"""Conversation session, turn and turn-result models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from journey_engine.utils import utc_now


class Role(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Turn(BaseModel):
    """A single history entry. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    timestamp: datetime = Field(default_factory=utc_now)
    channel: Optional[str] = None


class StageVisit(BaseModel):
    """Recorded entry into a stage."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    entered_at: datetime = Field(default_factory=utc_now)
    trigger: Optional[str] = None


class ConversationSession(BaseModel):
    """
    Live state of one conversation for one customer and one intent.

    Owned by the SessionStore. The orchestrator works on a copy for the
    length of one turn and hands it back through ``SessionStore.put``.
    """

    session_id: str
    customer_id: str
    intent: str
    current_stage_id: Optional[str] = None
    collected_data: dict[str, Any] = Field(default_factory=dict)
    history: list[Turn] = Field(default_factory=list)
    stage_history: list[StageVisit] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.ACTIVE
    version: int = 0
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def snapshot(self) -> "ConversationSession":
        """Independent deep copy, used as the rollback point of a turn."""
        return self.model_copy(deep=True)

    def add_turn(self, role: Role, text: str, channel: Optional[str] = None) -> Turn:
        turn = Turn(role=role, text=text, channel=channel)
        self.history.append(turn)
        return turn


class TurnResult(BaseModel):
    """Response bundle returned by the orchestrator for one turn."""

    reply: str
    session_id: str
    intent: str
    status: SessionStatus
    current_stage_id: Optional[str]
    collected_data: dict[str, Any]
    history: list[Turn]
    advanced: bool = False
    error: Optional[str] = None

    @classmethod
    def from_session(
        cls,
        session: ConversationSession,
        reply: str,
        advanced: bool = False,
        error: Optional[str] = None,
    ) -> "TurnResult":
        return cls(
            reply=reply,
            session_id=session.session_id,
            intent=session.intent,
            status=session.status,
            current_stage_id=session.current_stage_id,
            collected_data=dict(session.collected_data),
            history=list(session.history),
            advanced=advanced,
            error=error,
        )
