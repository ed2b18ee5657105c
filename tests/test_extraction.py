"""Tests for the extractor contract and the keyword extractor."""

import pytest

from journey_engine.config import ExtractorConfig
from journey_engine.conversation.extraction import (
    ExtractionRequest,
    ExtractionResult,
    Extractor,
    FieldTarget,
    KeywordExtractor,
    build_extractor,
    extract_with_timeout,
    is_negative_response,
    is_positive_response,
)
from journey_engine.conversation.llm_extractor import LLMExtractor
from journey_engine.exceptions import ExtractionUnavailable
from tests.conftest import ScriptedExtractor, SlowExtractor


def make_request(journey, utterance, *fields):
    return ExtractionRequest(
        utterance=utterance,
        target_fields=[FieldTarget.from_spec(name, journey.field_spec(name)) for name in fields],
    )


async def extract(journey, utterance, *fields):
    result = await KeywordExtractor().extract(make_request(journey, utterance, *fields))
    return result.extracted_fields


class TestYesNoDetection:
    def test_positive(self):
        assert is_positive_response("Yes please")
        assert is_positive_response("haan")
        assert not is_positive_response("")

    def test_negative(self):
        assert is_negative_response("No thanks")
        assert is_negative_response("nahi chahiye")
        assert not is_negative_response("I know")


class TestKeywordBoolean:
    @pytest.mark.asyncio
    async def test_yes(self, hospital_journey):
        assert await extract(hospital_journey, "Yes, I need admission", "needsAdmission") == {
            "needsAdmission": True
        }

    @pytest.mark.asyncio
    async def test_pattern_counts_as_yes(self, hospital_journey):
        assert await extract(hospital_journey, "she will be admitted", "needsAdmission") == {
            "needsAdmission": True
        }

    @pytest.mark.asyncio
    async def test_negation_beats_pattern(self, hospital_journey):
        assert await extract(hospital_journey, "No admission needed", "needsAdmission") == {
            "needsAdmission": False
        }

    @pytest.mark.asyncio
    async def test_no_cue(self, hospital_journey):
        assert await extract(hospital_journey, "I need to find a hospital near me", "needsAdmission") == {}


class TestKeywordChoice:
    @pytest.mark.asyncio
    async def test_self(self, hospital_journey):
        assert await extract(hospital_journey, "I'm looking for myself", "patientRelation") == {
            "patientRelation": "self"
        }

    @pytest.mark.asyncio
    async def test_keyword_maps_to_choice(self, hospital_journey):
        assert await extract(hospital_journey, "It's for my wife", "patientRelation") == {
            "patientRelation": "spouse"
        }

    @pytest.mark.asyncio
    async def test_word_boundaries(self, hospital_journey):
        assert await extract(hospital_journey, "for my grandson", "patientRelation") == {}


class TestKeywordText:
    @pytest.mark.asyncio
    async def test_pattern_capture(self, hospital_journey):
        assert await extract(hospital_journey, "I have chest pain.", "symptom") == {
            "symptom": "chest pain"
        }

    @pytest.mark.asyncio
    async def test_sole_target_takes_whole_answer(self, hospital_journey):
        assert await extract(hospital_journey, "High fever", "symptom") == {"symptom": "High fever"}

    @pytest.mark.asyncio
    async def test_yes_no_is_not_free_text(self, hospital_journey):
        assert await extract(hospital_journey, "yes", "symptom") == {}


class TestKeywordLocation:
    @pytest.mark.asyncio
    async def test_bare_answer(self, hospital_journey):
        assert await extract(hospital_journey, "Andheri", "location") == {"location": "Andheri"}

    @pytest.mark.asyncio
    async def test_preposition_phrase(self, hospital_journey):
        assert await extract(hospital_journey, "Somewhere near Bandra West", "location") == {
            "location": "Bandra West"
        }

    @pytest.mark.asyncio
    async def test_near_me_is_not_a_place(self, hospital_journey):
        assert await extract(hospital_journey, "I need to find a hospital near me", "location") == {}


class TestKeywordNumber:
    @pytest.mark.asyncio
    async def test_digits(self, checkup_journey):
        assert await extract(checkup_journey, "3 of us", "memberCount") == {"memberCount": "3"}

    @pytest.mark.asyncio
    async def test_empty_utterance(self, checkup_journey):
        assert await extract(checkup_journey, "   ", "memberCount") == {}


class TestTimeoutWrapper:
    @pytest.mark.asyncio
    async def test_passes_result_through(self):
        extractor = ScriptedExtractor({"symptom": "fever"})
        result = await extract_with_timeout(extractor, ExtractionRequest(utterance="x"), 1.0)
        assert result.extracted_fields == {"symptom": "fever"}

    @pytest.mark.asyncio
    async def test_timeout_becomes_unavailable_and_cancels(self):
        extractor = SlowExtractor(delay=5.0)
        with pytest.raises(ExtractionUnavailable, match="timed out"):
            await extract_with_timeout(extractor, ExtractionRequest(utterance="x"), 0.05)
        assert extractor.cancelled

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_unavailable(self):
        extractor = ScriptedExtractor(RuntimeError("socket closed"))
        with pytest.raises(ExtractionUnavailable, match="RuntimeError"):
            await extract_with_timeout(extractor, ExtractionRequest(utterance="x"), 1.0)

    @pytest.mark.asyncio
    async def test_unavailable_passes_through(self):
        extractor = ScriptedExtractor(ExtractionUnavailable("upstream 503"))
        with pytest.raises(ExtractionUnavailable, match="upstream 503"):
            await extract_with_timeout(extractor, ExtractionRequest(utterance="x"), 1.0)

    @pytest.mark.asyncio
    async def test_wrong_return_type(self):
        class BrokenExtractor(Extractor):
            async def extract(self, request):
                return {"symptom": "fever"}

        with pytest.raises(ExtractionUnavailable, match="expected ExtractionResult"):
            await extract_with_timeout(BrokenExtractor(), ExtractionRequest(utterance="x"), 1.0)


class TestExtractionResult:
    def test_wire_aliases(self):
        result = ExtractionResult.model_validate(
            {"extractedFields": {"symptom": "fever"}, "candidateReply": "Where are you?"}
        )
        assert result.extracted_fields == {"symptom": "fever"}
        assert result.candidate_reply == "Where are you?"


class TestBuildExtractor:
    def test_keyword_backend(self):
        assert isinstance(build_extractor(ExtractorConfig(backend="keyword")), KeywordExtractor)

    def test_llm_backend(self):
        assert isinstance(build_extractor(ExtractorConfig(backend="llm")), LLMExtractor)

