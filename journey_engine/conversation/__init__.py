from journey_engine.conversation.admin import SessionAdmin
from journey_engine.conversation.extraction import (
    ExtractionRequest,
    ExtractionResult,
    Extractor,
    KeywordExtractor,
)
from journey_engine.conversation.guardrails import GuardrailPipeline
from journey_engine.conversation.journey import (
    JourneyDefinition,
    JourneyRegistry,
    Stage,
    load_journey,
    load_journey_file,
    load_journeys,
)
from journey_engine.conversation.orchestrator import JourneyOrchestrator
from journey_engine.conversation.router import SessionRouter
from journey_engine.conversation.session_store import InMemorySessionStore, SessionStore
from journey_engine.conversation.slot_manager import SlotManager
from journey_engine.conversation.state_machine import (
    JourneyStateMachine,
    TransitionOutcome,
    TransitionTrigger,
)

__all__ = [
    "JourneyOrchestrator",
    "JourneyDefinition",
    "JourneyRegistry",
    "Stage",
    "load_journey",
    "load_journey_file",
    "load_journeys",
    "JourneyStateMachine",
    "TransitionOutcome",
    "TransitionTrigger",
    "SlotManager",
    "GuardrailPipeline",
    "Extractor",
    "ExtractionRequest",
    "ExtractionResult",
    "KeywordExtractor",
    "SessionStore",
    "InMemorySessionStore",
    "SessionRouter",
    "SessionAdmin",
]
