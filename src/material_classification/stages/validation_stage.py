"""Validation stage: independent second opinion on a low-confidence category."""
from src.llm_gateway.base import CompletionOptions, ModelGateway
from src.material_classification.base import GENERIC_DEFAULT_CONFIDENCE
from src.material_classification.models import Supercategory, ValidationResult
from src.material_classification.prompts import join_sections
from src.material_classification.response_parser import clamp_confidence, sanitize_string
from .utils import parse_stage_reply, title_line

STAGE_NAME = "validation"

instruction = """
You are an editor who double-checks whether the chosen category is correct.
If the category does not fit, propose an alternative and explain the discrepancy.
""".strip()

OUTPUT_FORMAT = """{
  "category": "Category name, or the previous one if you agree",
  "confidence": 0.8,
  "comment": "explanation of the assessment"
}"""


class ValidationStage:
    """
    Re-checks a proposed category and either confirms it or proposes another.

    The stage never invents a category the model did not name: when the
    reply carries no usable category, the proposed one is kept.
    """

    def __init__(self, gateway: ModelGateway):
        self.gateway = gateway

    async def validate(
        self,
        article_text: str,
        proposed_category: str | None,
        supercategory: Supercategory | None = None,
        title: str | None = None,
    ) -> ValidationResult:
        """
        Validate a proposed category against the article.

        Raises:
            ResponseParseError: If the reply holds no parseable JSON object
            ProviderError: If the model call fails
        """
        reply = await self.gateway.complete(
            instruction,
            self._build_prompt(article_text, proposed_category, supercategory, title),
            CompletionOptions(max_tokens=512, temperature=0.2),
        )
        payload = parse_stage_reply(STAGE_NAME, reply)

        return ValidationResult(
            category=sanitize_string(payload.get("category")) or proposed_category or None,
            confidence=clamp_confidence(payload.get("confidence"), GENERIC_DEFAULT_CONFIDENCE),
            comment=sanitize_string(payload.get("comment")),
        )

    def _build_prompt(
        self,
        article_text: str,
        proposed_category: str | None,
        supercategory: Supercategory | None,
        title: str | None,
    ) -> str:
        return join_sections([
            title_line(title),
            f"Proposed category: {proposed_category or 'not specified'}",
            f"Supercategory: {supercategory.value}" if supercategory else None,
            "READ THE ARTICLE:",
            article_text,
            "Return JSON:",
            OUTPUT_FORMAT,
            "Pure JSON only.",
        ])
