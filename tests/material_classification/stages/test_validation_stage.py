"""Tests for ValidationStage."""
import pytest

from src.material_classification.exceptions import ResponseParseError
from src.material_classification.models import Supercategory
from src.material_classification.stages.validation_stage import ValidationStage


class TestValidationStageHappyPath:
    """Test second-opinion results."""

    async def test_alternative_category_returned(self, scripted_gateway):
        # Given: The model disagrees with the proposal
        gateway = scripted_gateway({
            "category": "Economy",
            "confidence": 0.9,
            "comment": "The article is about monetary policy",
        })

        # When: Validating "Politics"
        result = await ValidationStage(gateway).validate(
            "Body", "Politics", supercategory=Supercategory.DOMESTIC, title="Rates"
        )

        # Then: Alternative with comment
        assert result.category == "Economy"
        assert result.confidence == 0.9
        assert result.comment == "The article is about monetary policy"

        prompt = gateway.calls[0]["user_prompt"]
        assert "Proposed category: Politics" in prompt
        assert "Supercategory: Domestic" in prompt
        assert gateway.calls[0]["options"].max_tokens == 512


class TestValidationStageEdgeCases:
    """Test fallbacks."""

    async def test_missing_category_keeps_proposal(self, scripted_gateway):
        # Given: The reply has no category and a garbled confidence
        gateway = scripted_gateway({"confidence": "very sure"})

        # When: Validating
        result = await ValidationStage(gateway).validate("Body", "Economy")

        # Then: Proposed category kept, generic default confidence
        assert result.category == "Economy"
        assert result.confidence == 0.5
        assert result.comment == ""

    async def test_no_proposal_and_no_category(self, scripted_gateway):
        gateway = scripted_gateway({"category": None})

        result = await ValidationStage(gateway).validate("Body", None)

        assert result.category is None
        assert "not specified" in gateway.calls[0]["user_prompt"]

    async def test_unparseable_reply_raises(self, scripted_gateway):
        gateway = scripted_gateway("looks fine to me")

        with pytest.raises(ResponseParseError, match="validation"):
            await ValidationStage(gateway).validate("Body", "Economy")
