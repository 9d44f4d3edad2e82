"""Tests for SupercategoryStage."""
import pytest

from src.material_classification.exceptions import ResponseParseError
from src.material_classification.models import Supercategory
from src.material_classification.stages.supercategory_stage import SupercategoryStage


class TestSupercategoryStageHappyPath:
    """Test successful supercategory classification."""

    async def test_domestic_article_returns_domestic(
        self, scripted_gateway, domestic_economy_article
    ):
        # Given: The model answers Domestic
        gateway = scripted_gateway({
            "supercategory": "Domestic",
            "reasoning": "Central bank decision inside the country",
            "confidence": 0.88,
        })
        stage = SupercategoryStage(gateway)

        # When: Classifying a domestic economic article
        result = await stage.classify(domestic_economy_article, title="Key rate raised")

        # Then: Domestic bucket with reported confidence
        assert result.supercategory is Supercategory.DOMESTIC
        assert result.confidence == 0.88
        assert result.reasoning == "Central bank decision inside the country"

    async def test_prompt_and_options(self, scripted_gateway):
        # Given: A stage with a scripted reply
        gateway = scripted_gateway({"supercategory": "General", "confidence": 0.5})
        stage = SupercategoryStage(gateway)

        # When: Classifying
        await stage.classify("Body text", title="Headline")

        # Then: Title and text are in the prompt, options match the stage
        call = gateway.calls[0]
        assert "Title: Headline" in call["user_prompt"]
        assert "Body text" in call["user_prompt"]
        assert call["options"].max_tokens == 512
        assert call["options"].temperature == 0.2


class TestSupercategoryStageEdgeCases:
    """Test lenient handling of odd replies."""

    async def test_unknown_supercategory_becomes_none(self, scripted_gateway):
        gateway = scripted_gateway({"supercategory": "Sports", "confidence": 0.9})

        result = await SupercategoryStage(gateway).classify("Body")

        assert result.supercategory is None

    async def test_missing_confidence_defaults(self, scripted_gateway):
        gateway = scripted_gateway({"supercategory": "International"})

        result = await SupercategoryStage(gateway).classify("Body")

        assert result.supercategory is Supercategory.INTERNATIONAL
        assert result.confidence == 0.6

    async def test_unparseable_reply_raises(self, scripted_gateway):
        # Given: The model answers in prose only
        gateway = scripted_gateway("I think this is domestic news.")

        # When/Then: Parse error names the stage
        with pytest.raises(ResponseParseError, match="supercategory") as exc_info:
            await SupercategoryStage(gateway).classify("Body")
        assert exc_info.value.stage == "supercategory"

    async def test_unbalanced_braces_reply_raises(self, scripted_gateway):
        gateway = scripted_gateway('["Domestic"] {')

        with pytest.raises(ResponseParseError):
            await SupercategoryStage(gateway).classify("Body")
