"""Tests for helpers shared by the classification stages."""
import pytest

from src.material_classification.exceptions import ResponseParseError
from src.material_classification.stages.utils import parse_stage_reply, title_line


class TestParseStageReply:
    """Test that stage replies must decode to a JSON object."""

    def test_object_reply_is_returned(self):
        assert parse_stage_reply("category", '{"category": "Economy"}') == {
            "category": "Economy"
        }

    def test_repaired_non_object_is_rejected(self, monkeypatch):
        # Given: The repair step turns a broken object into a list
        monkeypatch.setattr(
            "src.material_classification.response_parser.repair_json",
            lambda payload: "[1, 2]",
        )

        # When/Then: The stage refuses the reply
        with pytest.raises(ResponseParseError) as exc_info:
            parse_stage_reply("category", '{category: "Economy" confidence 0.9}')

        assert exc_info.value.stage == "category"
        assert exc_info.value.errors == ["expected a JSON object, got list"]

    def test_unparseable_reply_carries_attempt_errors(self):
        with pytest.raises(ResponseParseError) as exc_info:
            parse_stage_reply("validation", "no json at all")

        assert exc_info.value.errors == ["No JSON object found in response"]
        assert "validation" in str(exc_info.value)


class TestTitleLine:
    """Test the optional title prompt line."""

    @pytest.mark.parametrize("title", [None, ""])
    def test_missing_title_is_omitted(self, title):
        assert title_line(title) is None

    def test_title_is_labelled(self):
        assert title_line("Rates rise") == "Title: Rates rise"
