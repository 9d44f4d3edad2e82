"""Tests for the validation gate and decision policy."""
import pytest

from src.material_classification.models import CategoryStageResult, ValidationResult
from src.material_classification.utils import apply_decision_policy, needs_validation


class TestNeedsValidation:
    """Test the confidence gate in front of the validation stage."""

    def test_low_confidence_needs_validation(self):
        assert needs_validation(CategoryStageResult(category="Economy", confidence=0.4))

    def test_threshold_confidence_skips_validation(self):
        # Given: Confidence exactly at the threshold
        result = CategoryStageResult(category="Economy", confidence=0.75)

        # Then: Validation is skipped
        assert not needs_validation(result)

    def test_custom_threshold(self):
        result = CategoryStageResult(category="Economy", confidence=0.8)
        assert needs_validation(result, threshold=0.9)


class TestApplyDecisionPolicy:
    """Test combining category and validation results."""

    def test_without_validation_category_result_is_final(self):
        # Given: Validation was skipped
        category_result = CategoryStageResult(category="Economy", confidence=0.92)

        # When: Deciding
        category, confidence = apply_decision_policy(category_result, None)

        # Then: Category stage result stands
        assert (category, confidence) == ("Economy", 0.92)

    def test_disagreeing_validation_wins(self):
        # Given: Category 0.4, validation proposes another category at 0.9
        category_result = CategoryStageResult(category="Politics", confidence=0.4)
        validation = ValidationResult(category="Economy", confidence=0.9)

        # When: Deciding
        category, confidence = apply_decision_policy(category_result, validation)

        # Then: Validation category, confidence max(0.9, 0.4 * 0.9)
        assert category == "Economy"
        assert confidence == pytest.approx(0.9)

    def test_disagreement_keeps_discounted_original_confidence_when_higher(self):
        # Given: Validation disagrees but is less confident
        category_result = CategoryStageResult(category="Politics", confidence=0.7)
        validation = ValidationResult(category="Economy", confidence=0.3)

        # When: Deciding
        category, confidence = apply_decision_policy(category_result, validation)

        # Then: Confidence is 0.7 * 0.9
        assert category == "Economy"
        assert confidence == pytest.approx(0.63)

    def test_agreement_ignores_case_and_whitespace(self):
        # Given: Validation names the same category with different spelling
        category_result = CategoryStageResult(category="Economy", confidence=0.5)
        validation = ValidationResult(category=" economy ", confidence=0.8)

        # When: Deciding
        category, confidence = apply_decision_policy(category_result, validation)

        # Then: Original spelling kept, confidence raised
        assert category == "Economy"
        assert confidence == pytest.approx(0.8)

    def test_agreement_with_lower_confidence_keeps_original(self):
        category_result = CategoryStageResult(category="Economy", confidence=0.6)
        validation = ValidationResult(category="Economy", confidence=0.3)

        assert apply_decision_policy(category_result, validation) == ("Economy", 0.6)

    def test_custom_disagreement_factor(self):
        category_result = CategoryStageResult(category="Politics", confidence=0.7)
        validation = ValidationResult(category="Economy", confidence=0.1)

        _, confidence = apply_decision_policy(category_result, validation, disagreement_factor=0.5)

        assert confidence == pytest.approx(0.35)
