"""Shared test fixtures and helpers."""

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Optional, Union

import pytest

from journey_engine.config import SessionConfig
from journey_engine.conversation.extraction import (
    ExtractionRequest,
    ExtractionResult,
    Extractor,
    KeywordExtractor,
)
from journey_engine.conversation.journey import JourneyRegistry, load_journey, load_journeys
from journey_engine.conversation.orchestrator import JourneyOrchestrator
from journey_engine.conversation.session_store import InMemorySessionStore, SessionStore

JOURNEYS_DIR = Path(__file__).resolve().parent.parent / "journeys"

HOSPITAL = "HOSPITAL_LOCATOR"
CHECKUP = "HEALTH_CHECKUP"


def make_stage(
    stage_id: str,
    required_fields: Optional[list[str]] = None,
    transitions: Union[str, list[dict[str, Any]]] = "end",
    prompt: str = "",
) -> dict[str, Any]:
    """Helper to create a stage entry of a journey document."""
    return {
        "id": stage_id,
        "requiredFields": required_fields if required_fields is not None else [],
        "prompt": prompt or f"Please tell me your {{missing_fields}} ({stage_id}).",
        "transitions": transitions,
    }


def make_journey_document(
    intent: str = "TEST_INTENT",
    stages: Optional[list[dict[str, Any]]] = None,
    entry_stage_id: str = "first",
    **extra: Any,
) -> dict[str, Any]:
    """Helper to create a journey document: first(a) -> second(b) -> third(c) -> end."""
    if stages is None:
        stages = [
            make_stage("first", ["a"], "second"),
            make_stage("second", ["b"], "third"),
            make_stage("third", ["c"], "end"),
        ]
    document = {"intent": intent, "entryStageId": entry_stage_id, "stages": stages}
    document.update(extra)
    return document


def read_journey_document(filename: str) -> dict[str, Any]:
    return copy.deepcopy(json.loads((JOURNEYS_DIR / filename).read_text(encoding="utf-8")))


def make_session_config(
    orphan_policy: str = "abandon",
    restart_completed: bool = True,
    default_channel: str = "WHATSAPP",
) -> SessionConfig:
    return SessionConfig(
        orphan_policy=orphan_policy,
        restart_completed=restart_completed,
        default_channel=default_channel,
    )


def make_orchestrator(
    registry: JourneyRegistry,
    extractor: Optional[Extractor] = None,
    store: Optional[SessionStore] = None,
    extractor_timeout: float = 1.0,
    **session_kwargs: Any,
) -> JourneyOrchestrator:
    """Helper to create an orchestrator with explicit session policy."""
    return JourneyOrchestrator(
        registry=registry,
        store=store if store is not None else InMemorySessionStore(),
        extractor=extractor or KeywordExtractor(),
        session_config=make_session_config(**session_kwargs),
        extractor_timeout=extractor_timeout,
    )


class ScriptedExtractor(Extractor):
    """Returns queued results in order; an empty queue yields an empty result.

    Queue items may be an ExtractionResult, a dict of fields, or an
    exception instance to raise.
    """

    def __init__(self, *responses: Union[ExtractionResult, dict[str, Any], Exception]) -> None:
        self._responses = list(responses)
        self.requests: list[ExtractionRequest] = []

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        self.requests.append(request)
        if not self._responses:
            return ExtractionResult()
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            return ExtractionResult(extracted_fields=response)
        return response


class SlowExtractor(Extractor):
    """Never answers within a short timeout."""

    def __init__(self, delay: float = 5.0) -> None:
        self.delay = delay
        self.cancelled = False

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return ExtractionResult(extracted_fields={"needsAdmission": True})


class OverlapCountingExtractor(Extractor):
    """Maps utterances to fields and records how many calls overlap."""

    def __init__(self, by_utterance: dict[str, dict[str, Any]], delay: float = 0.02) -> None:
        self.by_utterance = by_utterance
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract(self, request: ExtractionRequest) -> ExtractionResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return ExtractionResult(extracted_fields=self.by_utterance.get(request.utterance, {}))


@pytest.fixture
def journey_document():
    return make_journey_document()


@pytest.fixture
def journey(journey_document):
    return load_journey(journey_document)


@pytest.fixture
def hospital_journey():
    return load_journey(read_journey_document("hospital_locator.json"))


@pytest.fixture
def checkup_journey():
    return load_journey(read_journey_document("health_checkup.json"))


@pytest.fixture
def registry():
    return load_journeys(JOURNEYS_DIR)


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def orchestrator(registry, store):
    return make_orchestrator(registry, store=store)
