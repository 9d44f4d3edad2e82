"""Supercategory stage: assigns one of three fixed coarse buckets."""
from loguru import logger

from src.llm_gateway.base import CompletionOptions, ModelGateway
from src.material_classification.base import HOME_REGION, STAGE_DEFAULT_CONFIDENCE
from src.material_classification.models import Supercategory, SupercategoryResult
from src.material_classification.prompts import join_sections
from src.material_classification.response_parser import clamp_confidence, sanitize_string
from .utils import parse_stage_reply, title_line

STAGE_NAME = "supercategory"

instruction = f"""
You are an analyst at a news portal. Your task is to choose the supercategory of a
material so that it can be classified precisely afterwards.

Possible supercategories:
- "{Supercategory.DOMESTIC.value}": events inside {HOME_REGION}, governance, economy, society.
- "{Supercategory.INTERNATIONAL.value}": foreign policy, international relations, global events affecting {HOME_REGION}.
- "{Supercategory.GENERAL.value}": general-interest material that fits neither of the above (for example technology or culture worldwide).

Always return JSON with the keys: supercategory, reasoning, confidence (0..1).
""".strip()

OUTPUT_FORMAT = f"""{{
  "supercategory": "{' | '.join(option.value for option in Supercategory)}",
  "reasoning": "why this option was chosen",
  "confidence": 0.82
}}"""


class SupercategoryStage:
    """
    Classifies a material into the closed Supercategory enum.

    A reply naming anything outside the enum yields supercategory=None
    rather than a new value. A missing or malformed confidence defaults
    to 0.6.
    """

    def __init__(self, gateway: ModelGateway):
        self.gateway = gateway

    async def classify(
        self, article_text: str, title: str | None = None
    ) -> SupercategoryResult:
        """
        Determine the supercategory of an article.

        Raises:
            ResponseParseError: If the reply holds no parseable JSON object
            ProviderError: If the model call fails
        """
        reply = await self.gateway.complete(
            instruction,
            self._build_prompt(article_text, title),
            CompletionOptions(max_tokens=512, temperature=0.2),
        )
        payload = parse_stage_reply(STAGE_NAME, reply)

        raw_value = sanitize_string(payload.get("supercategory"))
        supercategory = Supercategory.match(raw_value)
        if supercategory is None and raw_value:
            logger.warning(f"Supercategory '{raw_value}' is not a known option, ignoring")

        return SupercategoryResult(
            supercategory=supercategory,
            reasoning=sanitize_string(payload.get("reasoning")),
            confidence=clamp_confidence(payload.get("confidence"), STAGE_DEFAULT_CONFIDENCE),
        )

    def _build_prompt(self, article_text: str, title: str | None) -> str:
        return join_sections([
            title_line(title),
            "Article text:",
            article_text,
            "Choose the supercategory (only from the list).",
            "Return JSON in this format:",
            OUTPUT_FORMAT,
            "Pure JSON only.",
        ])
