"""Tests for material classification models."""
import pytest
from pydantic import ValidationError

from src.material_classification.models import (
    CategoryChainReasoning,
    ClassificationRequest,
    Supercategory,
)


class TestSupercategory:
    """Test matching free text against the closed enum."""

    @pytest.mark.parametrize("value", ["Domestic", " domestic ", "DOMESTIC"])
    def test_match_is_normalized(self, value):
        assert Supercategory.match(value) is Supercategory.DOMESTIC

    @pytest.mark.parametrize("value", ["Sports", "", None])
    def test_unknown_values_do_not_match(self, value):
        assert Supercategory.match(value) is None


class TestClassificationRequest:
    """Test request validation."""

    def test_valid_request_strips_fields(self):
        # Given/When: A request with padded fields
        request = ClassificationRequest(
            material_id=" rss-42 ",
            title="  Rate decision ",
            content=" Body ",
        )

        # Then: Fields are stripped, taxonomy defaults to empty
        assert request.material_id == "rss-42"
        assert request.title == "Rate decision"
        assert request.content == "Body"
        assert request.taxonomy.categories == []

    def test_empty_content_raises_error(self):
        with pytest.raises(ValidationError, match="Field cannot be empty"):
            ClassificationRequest(material_id="rss-42", content="   ")

    def test_empty_material_id_raises_error(self):
        with pytest.raises(ValidationError, match="Field cannot be empty"):
            ClassificationRequest(material_id="", content="Body")


class TestCategoryChainReasoning:
    """Test coercion of the model's chain-of-thought reply."""

    def test_full_reply_is_kept(self):
        # Given: A complete reply with an extra key
        payload = {
            "step1_summary": "Rate hike",
            "step2_context_signal": "yes, Ukrainian central bank",
            "step3_keywords": ["rate", "inflation"],
            "step4_category": "Economy",
            "step5_reasoning": "Monetary policy",
            "confidence": 0.9,
            "country": "Ukraine",
        }

        # When: Validating
        reasoning = CategoryChainReasoning.model_validate(payload)

        # Then: Known fields typed, extra key preserved
        assert reasoning.step3_keywords == ["rate", "inflation"]
        assert reasoning.confidence == 0.9
        assert reasoning.model_extra == {"country": "Ukraine"}

    def test_keyword_string_is_split(self):
        reasoning = CategoryChainReasoning.model_validate({"step3_keywords": "rate, inflation"})
        assert reasoning.step3_keywords == ["rate", "inflation"]

    def test_out_of_range_confidence_is_clamped(self):
        reasoning = CategoryChainReasoning.model_validate({"confidence": 3})
        assert reasoning.confidence == 1.0

    def test_unusable_values_become_none(self):
        # Given: Garbage in typed fields
        payload = {"step1_summary": {"nested": True}, "confidence": "unknown"}

        # When: Validating
        reasoning = CategoryChainReasoning.model_validate(payload)

        # Then: Dropped rather than rejected
        assert reasoning.step1_summary is None
        assert reasoning.confidence is None
