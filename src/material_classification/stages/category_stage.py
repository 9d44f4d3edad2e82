"""Category stage: open-vocabulary classification with a five-step chain of thought."""
from src.llm_gateway.base import CompletionOptions, ModelGateway
from src.material_classification.base import HOME_REGION, STAGE_DEFAULT_CONFIDENCE
from src.material_classification.models import (
    CategoryChainReasoning,
    CategoryExample,
    CategoryStageResult,
    Supercategory,
)
from src.material_classification.prompts import (
    build_category_examples,
    build_category_list,
    build_negative_examples,
    join_sections,
)
from src.material_classification.response_parser import clamp_confidence, sanitize_string
from src.taxonomy.models import Category
from .utils import parse_stage_reply, title_line

STAGE_NAME = "category"

OUTPUT_FORMAT = f"""{{
  "step1_summary": "...",
  "step2_context_signal": "yes/no, because...",
  "step3_keywords": ["word1", "word2"],
  "step4_category": "Category name",
  "step5_reasoning": "Why this category and not the other similar ones",
  "confidence": 0.95
}}"""

ANALYSIS_STEPS = [
    "Step 1: What is the article about, in one sentence?",
    f"Step 2: Is there a {HOME_REGION} context? (yes/no and why)",
    "Step 3: Which keywords are present?",
    "Step 4: Which category does it belong to?",
    "Step 5: Why exactly this category and not the similar ones?",
]


class CategoryStage:
    """
    Picks a category from the evolving category vocabulary.

    The model sees every known category (alphabetized, exact spelling),
    discriminative guidance for each, and a few labelled examples. It may
    propose a category that does not exist yet; this stage never writes to
    storage, creation happens later through the taxonomy resolver.

    Design: the whole parsed reply is kept as the reasoning trace, so the
    audit log records every step the model produced.
    """

    def __init__(self, gateway: ModelGateway):
        self.gateway = gateway

    async def classify(
        self,
        article_text: str,
        title: str | None = None,
        categories: list[Category] | None = None,
        examples: list[CategoryExample] | None = None,
        supercategory: Supercategory | None = None,
    ) -> CategoryStageResult:
        """
        Classify an article into a category.

        Args:
            article_text: Article body (plain text)
            title: Article title, if any
            categories: Currently known categories used as the vocabulary
            examples: Labelled materials for few-shot calibration
            supercategory: Result of the supercategory stage, if determined

        Returns:
            CategoryStageResult with category (None when the model named
            none), confidence (0.6 when missing or invalid) and the
            chain-of-thought trace

        Raises:
            ResponseParseError: If the reply holds no parseable JSON object
            ProviderError: If the model call fails
        """
        system_prompt = self._build_system_prompt(categories or [], examples or [])
        user_prompt = self._build_prompt(article_text, title, supercategory)

        reply = await self.gateway.complete(
            system_prompt,
            user_prompt,
            CompletionOptions(max_tokens=1024, temperature=0.3),
        )
        payload = parse_stage_reply(STAGE_NAME, reply)

        reasoning = CategoryChainReasoning.model_validate(payload)
        category = sanitize_string(payload.get("step4_category"))

        return CategoryStageResult(
            category=category or None,
            confidence=clamp_confidence(payload.get("confidence"), STAGE_DEFAULT_CONFIDENCE),
            reasoning=reasoning,
        )

    def _build_system_prompt(
        self,
        categories: list[Category],
        examples: list[CategoryExample],
    ) -> str:
        return join_sections([
            "You are an experienced editor who classifies news materials.",
            "Available categories (use the exact spelling):",
            build_category_list(categories),
            "How to tell categories apart:",
            build_negative_examples(categories),
            "Examples from the archive (follow their style and topics):",
            build_category_examples(examples),
            "If nothing matches exactly, propose a new category and explain how it "
            "differs from the existing ones.",
        ])

    def _build_prompt(
        self,
        article_text: str,
        title: str | None,
        supercategory: Supercategory | None,
    ) -> str:
        if supercategory:
            supercategory_line = (
                f"Detected supercategory: {supercategory.value}. Make sure the final "
                "category is compatible with this supercategory."
            )
        else:
            supercategory_line = (
                "The supercategory could not be determined; choose the most fitting category."
            )

        return join_sections([
            title_line(title),
            supercategory_line,
            "Analyze the article and determine its category. Use step-by-step analysis.",
            "ARTICLE:",
            article_text,
            "STEP-BY-STEP ANALYSIS:",
            "\n".join(ANALYSIS_STEPS),
            "Return JSON:",
            OUTPUT_FORMAT,
            "Pure JSON only, no markdown.",
        ])
