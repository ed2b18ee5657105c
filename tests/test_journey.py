"""Tests for journey document loading and validation."""

import dataclasses
import json

import pytest

from journey_engine.conversation.journey import (
    JourneyRegistry,
    load_journey,
    load_journey_file,
    load_journeys,
)
from journey_engine.exceptions import MalformedJourney, UnknownIntentError
from journey_engine.schemas.journey_schema import TERMINAL_STAGE, FieldKind
from tests.conftest import CHECKUP, HOSPITAL, JOURNEYS_DIR, make_journey_document, make_stage


class TestLoadShippedJourneys:
    def test_loads_every_document(self):
        registry = load_journeys(JOURNEYS_DIR)
        assert registry.intents() == [CHECKUP, HOSPITAL]

    def test_hospital_stage_order_and_fields(self, hospital_journey):
        assert hospital_journey.entry_stage_id == "ask_admission"
        assert list(hospital_journey.stages) == [
            "ask_admission", "ask_self_or_other", "ask_symptom", "ask_location",
        ]
        assert hospital_journey.fields == {
            "needsAdmission", "patientRelation", "symptom", "location",
        }

    def test_field_specs_loaded(self, hospital_journey):
        assert hospital_journey.field_spec("needsAdmission").kind == FieldKind.BOOLEAN
        assert "self" in hospital_journey.field_spec("patientRelation").choices

    def test_field_without_spec_gets_text_default(self, journey):
        assert journey.field_spec("a").kind == FieldKind.TEXT

    def test_stage_completeness(self, hospital_journey):
        stage = hospital_journey.stages["ask_admission"]
        assert not stage.is_complete({"symptom": "fever"})
        assert stage.is_complete({"needsAdmission": False})
        assert stage.missing_fields({}) == ["needsAdmission"]


class TestNextStageRules:
    def test_default_rule(self, hospital_journey):
        stage = hospital_journey.stages["ask_symptom"]
        assert stage.next_stage({"symptom": "fever"}) == "ask_location"

    def test_equals_condition(self, hospital_journey):
        stage = hospital_journey.entry_stage
        assert stage.next_stage({"needsAdmission": False}) == "ask_location"
        assert stage.next_stage({"needsAdmission": True}) == "ask_self_or_other"

    def test_in_condition(self, checkup_journey):
        stage = checkup_journey.stages["ask_members"]
        assert stage.next_stage({"checkupPackage": "cardiac", "memberCount": 2}) == "ask_location"
        assert stage.next_stage({"checkupPackage": "basic", "memberCount": 2}) == "ask_home_collection"

    def test_present_condition(self):
        document = make_journey_document(stages=[
            make_stage("first", ["a"], [
                {"when": {"field": "b", "present": True}, "to": "end"},
                {"to": "second"},
            ]),
            make_stage("second", ["b"]),
        ])
        journey = load_journey(document)
        assert journey.entry_stage.next_stage({"a": 1, "b": 2}) == TERMINAL_STAGE
        assert journey.entry_stage.next_stage({"a": 1}) == "second"

    def test_first_matching_rule_wins(self):
        document = make_journey_document(stages=[
            make_stage("first", ["a"], [
                {"when": {"field": "a", "in": ["x", "y"]}, "to": "second"},
                {"when": {"field": "a", "equals": "x"}, "to": "end"},
                {"to": "end"},
            ]),
            make_stage("second", ["b"]),
        ])
        journey = load_journey(document)
        assert journey.entry_stage.next_stage({"a": "x"}) == "second"


class TestMalformedDocuments:
    def test_duplicate_stage_id(self):
        document = make_journey_document(stages=[
            make_stage("first", ["a"], "first"),
            make_stage("first", ["b"]),
        ])
        with pytest.raises(MalformedJourney, match="duplicate stage id"):
            load_journey(document)

    def test_undefined_transition_target(self):
        document = make_journey_document(stages=[make_stage("first", ["a"], "nowhere")])
        with pytest.raises(MalformedJourney, match="undefined stage 'nowhere'"):
            load_journey(document)

    def test_missing_entry_stage(self):
        document = make_journey_document(entry_stage_id="start")
        with pytest.raises(MalformedJourney, match="entry stage 'start'"):
            load_journey(document)

    def test_empty_required_field_name(self):
        document = make_journey_document(stages=[make_stage("first", ["a", "  "])])
        with pytest.raises(MalformedJourney, match="empty required field"):
            load_journey(document)

    def test_required_field_listed_twice(self):
        document = make_journey_document(stages=[make_stage("first", ["a", "a"])])
        with pytest.raises(MalformedJourney, match="twice"):
            load_journey(document)

    def test_terminal_marker_is_reserved(self):
        document = make_journey_document(
            stages=[make_stage(TERMINAL_STAGE, ["a"])], entry_stage_id=TERMINAL_STAGE
        )
        with pytest.raises(MalformedJourney, match="reserved"):
            load_journey(document)

    def test_no_default_rule(self):
        document = make_journey_document(stages=[
            make_stage("first", ["a"], [{"when": {"field": "a", "equals": 1}, "to": "end"}]),
        ])
        with pytest.raises(MalformedJourney, match="no default transition"):
            load_journey(document)

    def test_empty_rule_list(self):
        document = make_journey_document(stages=[make_stage("first", ["a"], [])])
        with pytest.raises(MalformedJourney, match="no transitions"):
            load_journey(document)

    def test_condition_on_unknown_field(self):
        document = make_journey_document(stages=[
            make_stage("first", ["a"], [
                {"when": {"field": "zzz", "equals": 1}, "to": "end"},
                {"to": "end"},
            ]),
        ])
        with pytest.raises(MalformedJourney, match="unknown field 'zzz'"):
            load_journey(document)

    def test_condition_needs_exactly_one_operator(self):
        document = make_journey_document(stages=[
            make_stage("first", ["a"], [
                {"when": {"field": "a", "equals": 1, "present": True}, "to": "end"},
                {"to": "end"},
            ]),
        ])
        with pytest.raises(MalformedJourney, match="exactly one"):
            load_journey(document)

    def test_unreachable_stage(self):
        document = make_journey_document(stages=[
            make_stage("first", ["a"]),
            make_stage("orphan", ["b"]),
        ])
        with pytest.raises(MalformedJourney, match="not reachable"):
            load_journey(document)

    def test_missing_transitions_key(self):
        document = make_journey_document(stages=[{"id": "first", "requiredFields": ["a"]}])
        with pytest.raises(MalformedJourney, match="invalid document"):
            load_journey(document)

    def test_no_stages(self):
        with pytest.raises(MalformedJourney, match="no stages"):
            load_journey(make_journey_document(stages=[]))

    def test_field_spec_for_unknown_field(self):
        document = make_journey_document(fields={"zzz": {"kind": "text"}})
        with pytest.raises(MalformedJourney, match="not required by any stage"):
            load_journey(document)

    def test_choice_field_without_choices(self):
        document = make_journey_document(fields={"a": {"kind": "choice"}})
        with pytest.raises(MalformedJourney, match="declares no choices"):
            load_journey(document)

    def test_pattern_must_compile(self):
        document = make_journey_document(fields={"a": {"patterns": ["(unclosed"]}})
        with pytest.raises(MalformedJourney, match="does not compile"):
            load_journey(document)

    def test_bad_prompt_template(self):
        document = make_journey_document(stages=[make_stage("first", ["a"], prompt="Hello {")])
        with pytest.raises(MalformedJourney, match="not a valid template"):
            load_journey(document)

    def test_error_names_intent(self):
        document = make_journey_document(intent="MY_JOURNEY", entry_stage_id="missing")
        with pytest.raises(MalformedJourney, match="MY_JOURNEY"):
            load_journey(document)


class TestImmutability:
    def test_stage_map_is_read_only(self, journey):
        with pytest.raises(TypeError):
            journey.stages["extra"] = journey.entry_stage

    def test_definition_is_frozen(self, journey):
        with pytest.raises(dataclasses.FrozenInstanceError):
            journey.entry_stage_id = "second"

    def test_stage_is_frozen(self, journey):
        with pytest.raises(dataclasses.FrozenInstanceError):
            journey.entry_stage.prompt = "changed"


class TestFiles:
    def test_load_journey_file(self, tmp_path):
        path = tmp_path / "test.json"
        path.write_text(json.dumps(make_journey_document()), encoding="utf-8")
        journey = load_journey_file(path)
        assert journey.intent == "TEST_INTENT"

    def test_invalid_json_names_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedJourney, match="broken.json"):
            load_journey_file(path)

    def test_non_object_document(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(MalformedJourney, match="JSON object"):
            load_journey_file(path)

    def test_directory_stops_at_first_malformed(self, tmp_path):
        (tmp_path / "a.json").write_text(json.dumps(make_journey_document()), encoding="utf-8")
        (tmp_path / "b.json").write_text(
            json.dumps(make_journey_document(intent="OTHER", entry_stage_id="nope")),
            encoding="utf-8",
        )
        with pytest.raises(MalformedJourney, match="b.json"):
            load_journeys(tmp_path)

    def test_duplicate_intent_across_files(self, tmp_path):
        for name in ("a.json", "b.json"):
            (tmp_path / name).write_text(json.dumps(make_journey_document()), encoding="utf-8")
        with pytest.raises(MalformedJourney, match="more than once"):
            load_journeys(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(MalformedJourney, match="not found"):
            load_journeys(tmp_path / "missing")


class TestRegistry:
    def test_unknown_intent(self, journey):
        registry = JourneyRegistry([journey])
        with pytest.raises(UnknownIntentError, match="NOPE"):
            registry.get("NOPE")

    def test_unknown_intent_is_key_error(self, journey):
        registry = JourneyRegistry([journey])
        with pytest.raises(KeyError):
            registry.get("NOPE")

    def test_contains_and_len(self, journey):
        registry = JourneyRegistry([journey])
        assert "TEST_INTENT" in registry
        assert len(registry) == 1
