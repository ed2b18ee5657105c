"""
Journey orchestrator: processes one customer utterance end to end.

Per turn:
    resolve session -> lock it -> record the customer turn -> extract the
    fields the current stage is missing -> merge -> try to advance ->
    choose the reply -> record the agent turn -> persist.

Everything after the lock is taken works on a copy of the session, and
the store is written exactly once at the end, so a turn either commits
entirely or leaves the stored session untouched. Two degraded paths:
- extractor failure: the turn still commits, but only the two history
  entries change and the reply asks the customer to repeat.
- any other fault: nothing is written and the customer gets an apology.
"""

from typing import Optional

from journey_engine.config import AppConfig, SessionConfig
from journey_engine.conversation.extraction import (
    ExtractionRequest,
    ExtractionResult,
    Extractor,
    FieldTarget,
    build_extractor,
    extract_with_timeout,
)
from journey_engine.conversation.guardrails import GuardrailPipeline
from journey_engine.conversation.journey import JourneyDefinition, JourneyRegistry
from journey_engine.conversation.router import SessionRouter
from journey_engine.conversation.session_store import InMemorySessionStore, SessionStore
from journey_engine.conversation.slot_manager import SlotManager
from journey_engine.conversation.state_machine import JourneyStateMachine, TransitionOutcome
from journey_engine.exceptions import ExtractionUnavailable, SessionNotFound
from journey_engine.logging_context import get_session_logger, reset_session_id, set_session_id
from journey_engine.prompts.prompt_templates import build_final_message, build_missing_fields_prompt
from journey_engine.prompts.system_prompts import APOLOGY_REPLY, CLARIFICATION_REPLY
from journey_engine.schemas.api_schema import QueryOptions, QueryRequest, QueryResponse
from journey_engine.schemas.conversation_schema import (
    ConversationSession,
    Role,
    SessionStatus,
    TurnResult,
)
from journey_engine.utils import utc_now

logger = get_session_logger(__name__)

EXTRACTION_UNAVAILABLE = "extraction_unavailable"
INTERNAL_ERROR = "internal_error"
ROUTING_ATTEMPTS = 3


class JourneyOrchestrator:
    """
    The journey state machine driver.

    Collaborators are passed in explicitly; the orchestrator holds no
    session state of its own between turns.
    """

    def __init__(
        self,
        registry: JourneyRegistry,
        store: SessionStore,
        extractor: Extractor,
        session_config: Optional[SessionConfig] = None,
        extractor_timeout: float = 10.0,
        router: Optional[SessionRouter] = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._extractor = extractor
        self._session_config = session_config or SessionConfig()
        self._extractor_timeout = extractor_timeout
        self._router = router or SessionRouter(store, self._session_config)
        self._guardrails = GuardrailPipeline()

    @classmethod
    def from_config(
        cls,
        registry: JourneyRegistry,
        config: AppConfig,
        store: Optional[SessionStore] = None,
        extractor: Optional[Extractor] = None,
    ) -> "JourneyOrchestrator":
        """Wire an orchestrator from application settings."""
        return cls(
            registry=registry,
            store=store if store is not None else InMemorySessionStore(),
            extractor=extractor if extractor is not None else build_extractor(config.extractor),
            session_config=config.sessions,
            extractor_timeout=config.extractor.timeout_sec,
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    # ------------------------------------------------------------------ #
    # Public entry points
    # ------------------------------------------------------------------ #

    async def handle_query(self, request: QueryRequest) -> QueryResponse:
        """Inbound query body in, answer body out."""
        result = await self.process_turn(
            request.customer_id, request.intent, request.query, request.options
        )
        return QueryResponse.from_result(result)

    async def process_turn(
        self,
        customer_id: str,
        intent: str,
        utterance: str,
        options: Optional[QueryOptions] = None,
    ) -> TurnResult:
        """
        Process one customer utterance and return the reply bundle.

        Raises:
            UnknownIntentError: If no journey is loaded for ``intent``.
        """
        journey = self._registry.get(intent)
        channel = (
            (options.communication_mode if options else None)
            or self._session_config.default_channel
        )

        # Routing happens before the lock, so the session may have been
        # cleared, abandoned or completed by another turn in between.
        for attempt in range(1, ROUTING_ATTEMPTS + 1):
            session_id = await self._router.resolve(customer_id, intent, journey.entry_stage_id)
            token = set_session_id(session_id)
            try:
                async with self._store.lock(session_id):
                    session = await self._store.find(session_id)
                    if session is None:
                        logger.warning("Session %s vanished before its turn (attempt %d)", session_id, attempt)
                        continue
                    if not self._accepts_turns(session):
                        logger.info(
                            "Session %s became %s before its turn; routing again (attempt %d)",
                            session_id, session.status.value, attempt,
                        )
                        continue
                    return await self._run_turn(journey, session, utterance, channel)
            finally:
                reset_session_id(token)
        raise SessionNotFound(session_id)

    def _accepts_turns(self, session: ConversationSession) -> bool:
        """Whether the router would still pick this session for a new turn."""
        if session.status == SessionStatus.ABANDONED:
            return False
        if session.status == SessionStatus.COMPLETED:
            return not self._session_config.restart_completed
        return True

    # ------------------------------------------------------------------ #
    # Turn processing (called with the session lock held)
    # ------------------------------------------------------------------ #

    async def _run_turn(
        self,
        journey: JourneyDefinition,
        session: ConversationSession,
        utterance: str,
        channel: str,
    ) -> TurnResult:
        snapshot = session.snapshot()
        try:
            return await self._apply_turn(journey, session, utterance, channel)
        except Exception:
            logger.exception("Turn failed on session %s; stored state left unchanged", session.session_id)
            return TurnResult.from_session(snapshot, APOLOGY_REPLY, error=INTERNAL_ERROR)

    async def _apply_turn(
        self,
        journey: JourneyDefinition,
        session: ConversationSession,
        utterance: str,
        channel: str,
    ) -> TurnResult:
        logger.debug("Customer said: %r", utterance)
        session.add_turn(Role.CUSTOMER, utterance, channel)

        if session.status == SessionStatus.COMPLETED:
            reply = build_final_message(journey.final_message, session.collected_data)
            return await self._commit(session, reply, channel)

        stage = journey.stage(session.current_stage_id)
        missing = stage.missing_fields(session.collected_data)
        extraction = ExtractionResult()
        if missing:
            try:
                extraction = await self._extract(journey, session, utterance, missing)
            except ExtractionUnavailable as exc:
                logger.warning("Extraction unavailable at stage %s: %s", stage.id, exc)
                return await self._commit(
                    session, CLARIFICATION_REPLY, channel, error=EXTRACTION_UNAVAILABLE
                )

        slots = SlotManager(journey, session.collected_data)
        report = slots.merge(extraction.extracted_fields)
        if report.corrected:
            logger.info("Fields overwritten by newer values: %s", report.corrected)
        session.collected_data = slots.to_dict()

        machine = JourneyStateMachine(journey, stage.id)
        step = machine.advance(session.collected_data)
        session.stage_history.extend(machine.get_history())
        session.current_stage_id = step.stage_id

        if step.outcome == TransitionOutcome.COMPLETED:
            session.status = SessionStatus.COMPLETED
            reply = build_final_message(journey.final_message, session.collected_data)
        elif step.outcome == TransitionOutcome.ADVANCED:
            reply = build_missing_fields_prompt(
                machine.current_stage.prompt, session.collected_data, step.missing
            )
        else:
            reply = self._held_reply(stage.prompt, session, step.missing, extraction.candidate_reply)

        return await self._commit(session, reply, channel, advanced=step.moved)

    async def _extract(
        self,
        journey: JourneyDefinition,
        session: ConversationSession,
        utterance: str,
        missing: list[str],
    ) -> ExtractionResult:
        request = ExtractionRequest(
            utterance=utterance,
            target_fields=[FieldTarget.from_spec(name, journey.field_spec(name)) for name in missing],
            history=list(session.history),
        )
        result = await extract_with_timeout(self._extractor, request, self._extractor_timeout)
        logger.debug("Extracted %s for targets %s", result.extracted_fields, missing)
        return result

    def _held_reply(
        self,
        template: str,
        session: ConversationSession,
        missing: list[str],
        candidate: str,
    ) -> str:
        """Use the extractor's reply if it passes every check, else the stage prompt."""
        if candidate:
            violations = self._guardrails.check_candidate_reply(candidate, missing)
            if not violations:
                return candidate.strip()
            logger.debug("Candidate reply rejected: %s", [v.violation_type for v in violations])
        return build_missing_fields_prompt(template, session.collected_data, missing)

    async def _commit(
        self,
        session: ConversationSession,
        reply: str,
        channel: str,
        advanced: bool = False,
        error: Optional[str] = None,
    ) -> TurnResult:
        session.add_turn(Role.AGENT, reply, channel)
        session.updated_at = utc_now()
        stored = await self._store.put(session.session_id, session)
        return TurnResult.from_session(stored, reply, advanced=advanced, error=error)
