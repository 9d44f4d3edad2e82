"""
Material classification service.

Coordinates the pipeline: Supercategory → Category → (Validation) →
Taxonomy extraction → Taxonomy resolution → Audit log
"""
import logging
from typing import Any

from src.classification_persistence.base import TaxonomyStore
from src.classification_persistence.models.domain import CategorizationLog
from src.llm_gateway.base import ModelGateway
from src.taxonomy.models import TaxonomyMutation
from src.taxonomy.resolver import TaxonomyResolver
from .models import (
    CategoryStageResult,
    ClassificationOutcome,
    ClassificationRequest,
    ClassificationResult,
    SupercategoryResult,
    ValidationResult,
)
from .prompts import truncate_content
from .stages.category_stage import CategoryStage
from .stages.taxonomy_extraction_stage import TAXONOMY_KEYS, TaxonomyExtractionStage
from .stages.supercategory_stage import SupercategoryStage
from .stages.validation_stage import ValidationStage
from .utils import apply_decision_policy, needs_validation


logger = logging.getLogger(__name__)


class MaterialClassificationService:
    """
    Orchestrates classification of one material at a time.

    The stages run strictly in sequence because each consumes the previous
    one's output. Validation only runs when the category confidence is
    below the threshold. Label and place names are reconciled against the
    run's own taxonomy snapshot through a fresh TaxonomyResolver, so
    concurrent runs share nothing but the store.

    Every attempt that gets past the credential check writes exactly one
    CategorizationLog record, whether it succeeds or fails. Failures are
    returned in the outcome (result=None, mutation=None, error set) rather
    than raised, unless raise_on_error=True.

    Example:
        # Default stages (production)
        async with db_config.connection() as conn:
            service = MaterialClassificationService(
                gateway=AdkModelGateway(),
                store=PostgresTaxonomyStore(conn),
            )
            outcome = await service.classify_material(request)
            if outcome.classified:
                print(outcome.result.category, outcome.mutation)

        # Custom stages (testing)
        service = MaterialClassificationService(
            gateway=fake_gateway,
            store=in_memory_store,
            validation_stage=mock_validation_stage,
        )
    """

    def __init__(
        self,
        gateway: ModelGateway,
        store: TaxonomyStore,
        supercategory_stage: SupercategoryStage | None = None,
        category_stage: CategoryStage | None = None,
        validation_stage: ValidationStage | None = None,
        taxonomy_stage: TaxonomyExtractionStage | None = None,
        extract_taxonomy: bool = True,
        create_categories: bool = True,
        raise_on_error: bool = False,
    ):
        """
        Initialize the service with its collaborators.

        Args:
            gateway: Chat-completion gateway shared by the default stages
            store: Taxonomy store used for entity creation and audit logs
            supercategory_stage: Override for the supercategory stage
            category_stage: Override for the category stage
            validation_stage: Override for the validation stage
            taxonomy_stage: Override for the taxonomy extraction stage
            extract_taxonomy: Run the taxonomy extraction prompt
            create_categories: Resolve the final category into the taxonomy
                (creating it if new) and report it in the mutation
            raise_on_error: Re-raise stage failures after logging them
        """
        self.gateway = gateway
        self.store = store
        self.supercategory_stage = supercategory_stage or SupercategoryStage(gateway)
        self.category_stage = category_stage or CategoryStage(gateway)
        self.validation_stage = validation_stage or ValidationStage(gateway)
        self.taxonomy_stage = taxonomy_stage or TaxonomyExtractionStage(gateway)
        self.extract_taxonomy = extract_taxonomy
        self.create_categories = create_categories
        self.raise_on_error = raise_on_error

    async def classify_material(
        self, request: ClassificationRequest
    ) -> ClassificationOutcome:
        """
        Run the full pipeline for one material.

        Args:
            request: Material text, taxonomy snapshot and few-shot examples

        Returns:
            ClassificationOutcome with the final result and taxonomy mutation,
            or with error set when a stage failed

        Raises:
            MissingCredentialError: If the gateway has no credential
                (raised before any stage runs; nothing is logged)
        """
        self.gateway.require_credentials()

        logger.info(f"Classifying material: {request.material_id}")
        article_text = truncate_content(request.content)
        title = request.title or None

        supercategory_result: SupercategoryResult | None = None
        category_result: CategoryStageResult | None = None
        validation: ValidationResult | None = None

        try:
            supercategory_result = await self.supercategory_stage.classify(article_text, title)
            supercategory = supercategory_result.supercategory
            logger.info(
                f"Supercategory: {supercategory.value if supercategory else None} "
                f"(confidence={supercategory_result.confidence:.2f})"
            )

            category_result = await self.category_stage.classify(
                article_text,
                title,
                request.taxonomy.categories,
                request.examples,
                supercategory,
            )
            logger.info(
                f"Category: {category_result.category} "
                f"(confidence={category_result.confidence:.2f})"
            )

            if needs_validation(category_result):
                validation = await self.validation_stage.validate(
                    article_text,
                    category_result.category,
                    supercategory,
                    title,
                )
                logger.info(
                    f"Validation: {validation.category} "
                    f"(confidence={validation.confidence:.2f})"
                )

            final_category, final_confidence = apply_decision_policy(category_result, validation)

            mutation = await self._resolve_taxonomy(
                request, article_text, title, category_result, final_category
            )
        except Exception as e:
            error_msg = f"Failed to classify material {request.material_id}: {e}"
            logger.error(error_msg, exc_info=True)
            stored_log = await self.store.append_categorization_log(
                self._build_error_log(request, e, supercategory_result, category_result, validation)
            )
            if self.raise_on_error:
                raise
            return ClassificationOutcome(
                material_id=request.material_id,
                classified=False,
                result=None,
                mutation=None,
                log_id=stored_log.id,
                error=error_msg,
            )

        result = ClassificationResult(
            category=final_category,
            confidence=final_confidence,
            reasoning=category_result.reasoning,
            supercategory=supercategory_result.supercategory,
            validation_category=validation.category if validation else None,
            validation_confidence=validation.confidence if validation else None,
            validation_comment=validation.comment if validation else None,
        )

        stored_log = await self.store.append_categorization_log(
            self._build_success_log(
                request, supercategory_result, category_result, validation, result, mutation
            )
        )
        logger.info(
            f"Material {request.material_id} classified as '{result.category}' "
            f"(confidence={result.confidence:.2f}, validated={validation is not None})"
        )

        return ClassificationOutcome(
            material_id=request.material_id,
            classified=True,
            result=result,
            mutation=mutation,
            log_id=stored_log.id,
            error=None,
        )

    async def _resolve_taxonomy(
        self,
        request: ClassificationRequest,
        article_text: str,
        title: str | None,
        category_result: CategoryStageResult,
        final_category: str | None,
    ) -> TaxonomyMutation:
        """
        Reconcile labels, places and the final category against the taxonomy.

        Taxonomy keys come from the category reply if the model volunteered
        them, overridden by the dedicated taxonomy extraction prompt.
        """
        resolver = TaxonomyResolver(request.taxonomy, self.store)

        extra = category_result.reasoning.model_extra or {}
        payload: dict[str, Any] = {key: extra[key] for key in TAXONOMY_KEYS if key in extra}
        if self.extract_taxonomy:
            payload.update(
                await self.taxonomy_stage.extract(article_text, title, request.taxonomy)
            )

        mutation = await resolver.resolve_taxonomy(payload)

        if self.create_categories and final_category:
            category = await resolver.resolve_category(final_category)
            if category:
                mutation.category_ids = [category.id]  # type: ignore

        return mutation

    def _build_success_log(
        self,
        request: ClassificationRequest,
        supercategory_result: SupercategoryResult,
        category_result: CategoryStageResult,
        validation: ValidationResult | None,
        result: ClassificationResult,
        mutation: TaxonomyMutation,
    ) -> CategorizationLog:
        return CategorizationLog(
            material_id=request.material_id,
            supercategory=result.supercategory.value if result.supercategory else None,
            predicted_category=category_result.category,
            validation_category=validation.category if validation else None,
            confidence=category_result.confidence,
            validation_confidence=validation.confidence if validation else None,
            reasoning={
                "supercategory_reasoning": supercategory_result.reasoning,
                "classification": category_result.reasoning.model_dump(),
                "validation_comment": validation.comment if validation else None,
            },
            metadata={
                "final_category": result.category,
                "final_confidence": result.confidence,
                "validated": validation is not None,
                "model": getattr(self.gateway, "default_model", None),
                "taxonomy": mutation.model_dump(exclude_none=True),
            },
        )

    def _build_error_log(
        self,
        request: ClassificationRequest,
        error: Exception,
        supercategory_result: SupercategoryResult | None,
        category_result: CategoryStageResult | None,
        validation: ValidationResult | None,
    ) -> CategorizationLog:
        supercategory = supercategory_result.supercategory if supercategory_result else None
        return CategorizationLog(
            material_id=request.material_id,
            supercategory=supercategory.value if supercategory else None,
            predicted_category=category_result.category if category_result else None,
            validation_category=validation.category if validation else None,
            confidence=0.0,
            validation_confidence=validation.confidence if validation else None,
            reasoning={"error": str(error)},
            metadata={
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
