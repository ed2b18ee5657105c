"""Tests for the command-line entry point."""

import json

from main import _run_validate
from tests.conftest import JOURNEYS_DIR, make_journey_document, make_stage


class TestValidateCommand:
    def test_bundled_journeys_are_valid(self, capsys):
        assert _run_validate(str(JOURNEYS_DIR)) == 0
        out = capsys.readouterr().out
        assert "OK: HOSPITAL_LOCATOR" in out
        assert "OK: HEALTH_CHECKUP" in out

    def test_malformed_journey_reported(self, tmp_path, capsys):
        document = make_journey_document(stages=[make_stage("first", ["a"], "nowhere")])
        (tmp_path / "broken.json").write_text(json.dumps(document), encoding="utf-8")
        assert _run_validate(str(tmp_path)) == 1
        assert "INVALID" in capsys.readouterr().out
