"""Decision helpers for combining category and validation results."""
from .base import DISAGREEMENT_CONFIDENCE_FACTOR, VALIDATION_THRESHOLD
from .models import CategoryStageResult, ValidationResult
from .response_parser import normalize_name


def needs_validation(
    category_result: CategoryStageResult,
    threshold: float = VALIDATION_THRESHOLD,
) -> bool:
    """A category result below the threshold gets a second opinion."""
    return category_result.confidence < threshold


def apply_decision_policy(
    category_result: CategoryStageResult,
    validation: ValidationResult | None,
    disagreement_factor: float = DISAGREEMENT_CONFIDENCE_FACTOR,
) -> tuple[str | None, float]:
    """
    Decide the final category and confidence.

    Rules:
    - No validation ran → the category stage result is final.
    - Validation names a different category (normalized comparison) →
      it wins, with confidence max(validation, category × factor).
    - Validation agrees → confidence is raised to the validation
      confidence if that is higher, otherwise kept.

    Args:
        category_result: Output of the category stage
        validation: Output of the validation stage, None if skipped
        disagreement_factor: Weight of the original confidence on disagreement

    Returns:
        (final_category, final_confidence)

    Example:
        >>> apply_decision_policy(
        ...     CategoryStageResult(category="Politics", confidence=0.4),
        ...     ValidationResult(category="Economy", confidence=0.9),
        ... )
        ('Economy', 0.9)
    """
    final_category = category_result.category
    final_confidence = category_result.confidence

    if validation is None:
        return final_category, final_confidence

    if validation.category and normalize_name(validation.category) != normalize_name(final_category):
        return (
            validation.category,
            max(validation.confidence, final_confidence * disagreement_factor),
        )

    if validation.confidence > final_confidence:
        final_confidence = validation.confidence

    return final_category, final_confidence
