"""
Finite state machine over a journey's stage graph.

States are the journey's stage ids plus the absorbing terminal state.
A transition fires only when every required field of the current stage
is present in the collected data; the stage's transition rules then pick
the target. A machine lives for one turn; completed sessions never get
one, which keeps the terminal state absorbing.

Usage:
    sm = JourneyStateMachine(journey)
    step = sm.advance({"needsAdmission": True})
    assert step.outcome == TransitionOutcome.ADVANCED
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from journey_engine.conversation.journey import JourneyDefinition, Stage
from journey_engine.schemas.conversation_schema import StageVisit
from journey_engine.schemas.journey_schema import TERMINAL_STAGE

logger = logging.getLogger(__name__)


class TransitionTrigger(str, Enum):
    """Why a stage was entered."""
    SESSION_STARTED = "session_started"
    FIELDS_COMPLETE = "fields_complete"
    AUTO_PROGRESS = "auto_progress"


class TransitionOutcome(str, Enum):
    HELD = "held"
    ADVANCED = "advanced"
    COMPLETED = "completed"


@dataclass
class StepResult:
    """Outcome of one ``advance`` call."""
    outcome: TransitionOutcome
    from_stage: str
    stage_id: str
    path: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)

    @property
    def moved(self) -> bool:
        return self.outcome != TransitionOutcome.HELD


class JourneyStateMachine:
    """
    Deterministic stage machine for one session's turn.

    The machine never mutates collected data; it only reads it to decide
    whether the current stage is complete and where to go next.
    """

    def __init__(self, journey: JourneyDefinition, current_stage_id: Optional[str] = None) -> None:
        self._journey = journey
        self._current_stage_id = journey.stage(current_stage_id).id
        self._visits: list[StageVisit] = []

    @property
    def current_stage(self) -> Stage:
        return self._journey.stages[self._current_stage_id]

    @property
    def current_stage_id(self) -> str:
        return self._current_stage_id

    def advance(self, collected: Mapping[str, Any]) -> StepResult:
        """
        Try to move past the current stage.

        Holds when required fields are missing. Otherwise follows the stage's
        rules, then keeps going through stages whose fields were already
        collected earlier, stopping at the first stage still missing data,
        a stage with no required fields, or the terminal marker.
        """
        start = self._current_stage_id
        stage = self.current_stage
        missing = stage.missing_fields(collected)
        if missing:
            logger.debug("Holding at stage %s, missing %s", stage.id, missing)
            return StepResult(TransitionOutcome.HELD, start, stage.id, missing=missing)

        path: list[str] = []
        trigger = TransitionTrigger.FIELDS_COMPLETE
        for _ in range(len(self._journey.stages)):
            target = stage.next_stage(collected)
            if target == TERMINAL_STAGE:
                logger.info("Journey %s completed at stage %s", self._journey.intent, stage.id)
                return StepResult(TransitionOutcome.COMPLETED, start, stage.id, path)

            self._enter(target, trigger)
            path.append(target)
            stage = self.current_stage
            if not stage.required_fields or not stage.is_complete(collected):
                break
            trigger = TransitionTrigger.AUTO_PROGRESS

        return StepResult(
            TransitionOutcome.ADVANCED,
            start,
            stage.id,
            path,
            missing=stage.missing_fields(collected),
        )

    def _enter(self, stage_id: str, trigger: TransitionTrigger) -> None:
        old = self._current_stage_id
        self._current_stage_id = stage_id
        self._visits.append(StageVisit(stage_id=stage_id, trigger=trigger.value))
        logger.info("Stage transition: %s -> %s (trigger: %s)", old, stage_id, trigger.value)

    def get_history(self) -> list[StageVisit]:
        """Stage visits recorded by this machine."""
        return list(self._visits)
