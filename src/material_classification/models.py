"""Classification models for the material classification pipeline."""
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.taxonomy.models import TaxonomyMutation, TaxonomySnapshot
from .response_parser import clamp_confidence, normalize_name, sanitize_string_list


class Supercategory(str, Enum):
    """
    Closed set of coarse topic buckets assigned before fine-grained categorization.

    - DOMESTIC: Events inside the home country (governance, economy, society)
    - INTERNATIONAL: Foreign policy, international relations, global events
      affecting the home country
    - GENERAL: General-interest material that fits neither of the above

    Example:
        >>> Supercategory.match(" domestic ")
        <Supercategory.DOMESTIC: 'Domestic'>
        >>> Supercategory.match("Sports") is None
        True
    """

    DOMESTIC = "Domestic"
    INTERNATIONAL = "International"
    GENERAL = "General"

    @classmethod
    def match(cls, value: str | None) -> "Supercategory | None":
        """Match a free-text value against the enum by normalized name."""
        normalized = normalize_name(value)
        if not normalized:
            return None
        for option in cls:
            if normalize_name(option.value) == normalized:
                return option
        return None


class CategoryExample(BaseModel):
    """Curated, already-labelled material used as few-shot context."""

    id: str
    title: str
    summary: str | None = None
    content: str | None = None
    category: str

    model_config = ConfigDict(from_attributes=True)


class ClassificationRequest(BaseModel):
    """
    Input for one classification run.

    Carries the material text together with a taxonomy snapshot owned by
    this run only, so concurrent runs never share mutable taxonomy state.

    Example:
        >>> request = ClassificationRequest(
        ...     material_id="rss-42",
        ...     title="Central bank raises key rate",
        ...     content="The National Bank raised its key policy rate to 15.5%...",
        ...     taxonomy=snapshot,
        ...     examples=[],
        ... )
    """

    material_id: str
    title: str = ""
    content: str
    taxonomy: TaxonomySnapshot = Field(default_factory=TaxonomySnapshot)
    examples: list[CategoryExample] = []

    model_config = ConfigDict(from_attributes=True)

    @field_validator('material_id', 'content')
    @classmethod
    def validate_required_string(cls, v: str) -> str:
        """Validate that required string fields are not empty."""
        if not v or not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Strip whitespace from title (can be empty)."""
        return v.strip() if v else ""


class SupercategoryResult(BaseModel):
    """Output of the supercategory stage."""

    supercategory: Supercategory | None
    reasoning: str = ""
    confidence: float = Field(ge=0.0, le=1.0)


class CategoryChainReasoning(BaseModel):
    """
    Five-step chain-of-thought trace returned by the category stage.

    Every field is optional because it comes straight from model output.
    Unknown keys are preserved so the audit log keeps the full reply.
    """

    step1_summary: str | None = None
    step2_context_signal: str | None = None
    step3_keywords: list[str] = []
    step4_category: str | None = None
    step5_reasoning: str | None = None
    confidence: float | None = None

    model_config = ConfigDict(extra="allow")

    @field_validator('step1_summary', 'step2_context_signal', 'step4_category', 'step5_reasoning', mode='before')
    @classmethod
    def coerce_text(cls, v: Any) -> str | None:
        """Keep strings, stringify scalars, drop anything else."""
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (int, float, bool)):
            return str(v)
        return None

    @field_validator('step3_keywords', mode='before')
    @classmethod
    def coerce_keywords(cls, v: Any) -> list[str]:
        """Accept a single keyword string as a one-item list."""
        if isinstance(v, str):
            v = v.split(",")
        return sanitize_string_list(v)

    @field_validator('confidence', mode='before')
    @classmethod
    def coerce_confidence(cls, v: Any) -> float | None:
        """Clamp reported confidence; unusable values become None."""
        clamped = clamp_confidence(v, fallback=-1.0)
        return None if clamped < 0 else clamped


class CategoryStageResult(BaseModel):
    """Output of the category stage."""

    category: str | None
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: CategoryChainReasoning = Field(default_factory=CategoryChainReasoning)


class ValidationResult(BaseModel):
    """Output of the validation stage."""

    category: str | None
    confidence: float = Field(ge=0.0, le=1.0)
    comment: str = ""


class ClassificationResult(BaseModel):
    """
    Final classification of a material.

    Workflow Position:
        Supercategory → Category → (Validation) → **ClassificationResult**

    Example:
        >>> result = ClassificationResult(
        ...     category="Economy",
        ...     confidence=0.9,
        ...     reasoning=CategoryChainReasoning(step4_category="Economy"),
        ...     supercategory=Supercategory.DOMESTIC,
        ... )
        >>> result.validation_category is None
        True
    """

    category: str | None
    confidence: float
    reasoning: CategoryChainReasoning
    supercategory: Supercategory | None
    validation_category: str | None = None
    validation_confidence: float | None = None
    validation_comment: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('confidence')
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        """Validate that confidence is between 0.0 and 1.0."""
        if v < 0.0 or v > 1.0:
            raise ValueError('Confidence must be between 0.0 and 1.0')
        return v


class ClassificationOutcome(BaseModel):
    """
    Result of running one material through the classification pipeline.

    Attributes:
        material_id: Material that was classified
        classified: Whether every stage completed
        result: Final classification, None if the run failed
        mutation: Taxonomy association changes for the caller to apply,
                  None if the run failed (partial mutations are discarded)
        log_id: Database ID of the audit record written for this attempt
        error: Error message if the run failed, None otherwise

    Example - Run failed on an unparseable reply:
        ClassificationOutcome(
            material_id="rss-42",
            classified=False,
            result=None,
            mutation=None,
            log_id=17,
            error="Failed to parse category response: ...",
        )
    """

    material_id: str
    classified: bool
    result: ClassificationResult | None = None
    mutation: TaxonomyMutation | None = None
    log_id: int | None = None
    error: str | None = None

    model_config = ConfigDict(from_attributes=True)
