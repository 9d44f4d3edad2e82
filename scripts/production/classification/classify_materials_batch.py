"""
Production batch script for classifying materials against the taxonomy.

Reads materials from a JSONL file and runs each one through the pipeline:
Supercategory → Category → (Validation) → Labels and places → Taxonomy → Audit log

Each input line is a JSON object:
    {"material_id": "rss-42", "title": "...", "content": "..."}

Features:
- Dry-run mode (--dry-run): in-memory taxonomy store, no database access
- Configurable concurrency (--concurrency)
- Optional few-shot examples (--examples)
- Real-time progress tracking with rich library
- Per-material outcomes (category, confidence, taxonomy mutation) as JSONL

Usage:
    uv run python scripts/production/classification/classify_materials_batch.py \\
        --input materials.jsonl \\
        --concurrency 4

Environment Variables:
    DATABASE_URL        PostgreSQL connection string
    ANTHROPIC_API_KEY   Provider API key
    LLM_MODEL           Default model (overridden by the persisted setting)
    LOG_JSON            Enable JSON logging (default: false)
"""
import argparse
import asyncio
import json
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

# Script is at scripts/production/classification/classify_materials_batch.py
# So we need to go up 3 levels to reach project root
project_root = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root))

from config.database import db_config
from config.log_config import configure_logging
from src.classification_persistence.base import TaxonomyStore
from src.classification_persistence.in_memory_store import InMemoryTaxonomyStore
from src.classification_persistence.service import (
    PostgresModelPreferenceStore,
    PostgresTaxonomyStore,
)
from src.llm_gateway.service import AdkModelGateway
from src.material_classification.base import MaterialClassifier
from src.material_classification.exceptions import MissingCredentialError
from src.material_classification.models import (
    CategoryExample,
    ClassificationOutcome,
    ClassificationRequest,
)
from src.material_classification.service import MaterialClassificationService
from src.taxonomy.models import TaxonomySnapshot


@dataclass
class BatchStatistics:
    """Thread-safe statistics tracker for batch classification."""

    total: int = 0
    processed: int = 0
    classified: int = 0
    validated: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.time)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    async def record(self, outcome: ClassificationOutcome) -> None:
        async with self._lock:
            self.processed += 1
            if outcome.classified:
                self.classified += 1
                if outcome.result and outcome.result.validation_category is not None:
                    self.validated += 1
            if outcome.error:
                self.errors += 1

    def get_snapshot(self) -> dict:
        elapsed = time.time() - self.start_time
        return {
            "total": self.total,
            "processed": self.processed,
            "classified": self.classified,
            "validated": self.validated,
            "errors": self.errors,
            "elapsed_time": elapsed,
            "materials_per_second": self.processed / elapsed if elapsed > 0 else 0.0,
        }


def load_jsonl(file_path: Path, model: type) -> list:
    """
    Load and validate JSONL records.

    Raises:
        ValueError: If a line is not valid JSON or fails validation
    """
    records = []
    with open(file_path, encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(model.model_validate(json.loads(line)))
            except json.JSONDecodeError as e:
                raise ValueError(f"{file_path} line {line_num}: Invalid JSON: {e}")
            except ValidationError as e:
                raise ValueError(f"{file_path} line {line_num}: {e}")

    logger.info(f"Loaded {len(records)} records from {file_path}")
    return records


def create_statistics_table(stats: BatchStatistics) -> Table:
    snapshot = stats.get_snapshot()

    table = Table(title="Batch Classification Statistics", box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")

    table.add_row("Total Materials", str(snapshot["total"]))
    table.add_row("Processed", str(snapshot["processed"]))
    table.add_row("Classified", f"[green]{snapshot['classified']}[/green]")
    table.add_row("Validated", str(snapshot["validated"]))
    table.add_row("Errors", f"[red]{snapshot['errors']}[/red]")
    table.add_row("", "")
    table.add_row("Elapsed Time", f"{snapshot['elapsed_time']:.1f}s")
    table.add_row("Materials/sec", f"{snapshot['materials_per_second']:.2f}")

    return table


async def classify_with_store(
    request: ClassificationRequest,
    gateway: AdkModelGateway,
    store: TaxonomyStore,
) -> ClassificationOutcome:
    snapshot = await store.list_taxonomy()
    classifier: MaterialClassifier = MaterialClassificationService(gateway=gateway, store=store)
    return await classifier.classify_material(
        request.model_copy(update={"taxonomy": snapshot})
    )


async def classify_single_material(
    request: ClassificationRequest,
    gateway: AdkModelGateway,
    stats: BatchStatistics,
    dry_run_store: InMemoryTaxonomyStore | None,
) -> ClassificationOutcome:
    """
    Classify one material against a fresh taxonomy snapshot.

    The snapshot is loaded per material so entities created by earlier
    materials are visible; concurrent materials never share resolver state.
    """
    try:
        if dry_run_store is not None:
            outcome = await classify_with_store(request, gateway, dry_run_store)
        else:
            async with db_config.connection() as conn:
                outcome = await classify_with_store(
                    request, gateway, PostgresTaxonomyStore(conn)
                )
    except Exception as e:
        # Failures outside the pipeline (connection, audit log write)
        logger.exception(f"Unexpected error classifying {request.material_id}: {e}")
        outcome = ClassificationOutcome(
            material_id=request.material_id,
            classified=False,
            error=f"Unexpected error: {e}",
        )

    await stats.record(outcome)
    return outcome


async def classify_materials_concurrent(
    requests: list[ClassificationRequest],
    gateway: AdkModelGateway,
    stats: BatchStatistics,
    max_concurrency: int = 4,
    dry_run_store: InMemoryTaxonomyStore | None = None,
) -> list[ClassificationOutcome]:
    """Classify materials with bounded concurrency and a live progress bar."""
    semaphore = asyncio.Semaphore(max_concurrency)
    console = Console()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeRemainingColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task(
            f"[cyan]Classifying {len(requests)} materials...", total=len(requests)
        )

        async def bounded_task(request: ClassificationRequest) -> ClassificationOutcome:
            async with semaphore:
                outcome = await classify_single_material(
                    request, gateway, stats, dry_run_store
                )
            progress.update(task_id, completed=stats.processed)
            return outcome

        return await asyncio.gather(*(bounded_task(r) for r in requests))


def write_outcomes(
    outcomes: list[ClassificationOutcome],
    output_dir: Path,
    timestamp: str,
) -> Path:
    """Write one JSONL line per material: final category plus taxonomy mutation."""
    results_dir = output_dir / "batch_results"
    results_dir.mkdir(parents=True, exist_ok=True)

    outcome_file = results_dir / f"classification_{timestamp}.jsonl"
    with open(outcome_file, "w", encoding="utf-8") as f:
        for outcome in outcomes:
            f.write(outcome.model_dump_json(exclude={"result": {"reasoning"}}) + "\n")

    logger.info(f"Outcomes written: {outcome_file} ({len(outcomes)} materials)")
    return outcome_file


def generate_final_report(
    stats: BatchStatistics,
    output_dir: Path,
    timestamp: str,
    input_file: str,
    concurrency: int,
    dry_run: bool,
    model: str | None,
) -> dict:
    snapshot = stats.get_snapshot()

    report = {
        "metadata": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "input_file": input_file,
            "dry_run": dry_run,
            "concurrency": concurrency,
            "model": model,
        },
        "summary": {
            "total_materials": snapshot["total"],
            "processed": snapshot["processed"],
            "classified": snapshot["classified"],
            "validated": snapshot["validated"],
            "errors": snapshot["errors"],
        },
        "performance": {
            "elapsed_seconds": round(snapshot["elapsed_time"], 2),
            "materials_per_second": round(snapshot["materials_per_second"], 2),
        },
    }

    results_dir = output_dir / "batch_results"
    results_dir.mkdir(parents=True, exist_ok=True)
    report_file = results_dir / f"classification_{timestamp}_summary.json"
    with open(report_file, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)

    logger.info(f"Final report written: {report_file}")
    return report


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Classify materials into the taxonomy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Classify against the database taxonomy
  uv run python scripts/production/classification/classify_materials_batch.py \\
      --input materials.jsonl --concurrency 4

  # Dry-run against a taxonomy exported as JSON, nothing is written to the database
  uv run python scripts/production/classification/classify_materials_batch.py \\
      --input materials.jsonl --dry-run --taxonomy taxonomy.json
        """,
    )

    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Path to JSONL file with materials (material_id, title, content)",
    )
    parser.add_argument(
        "--examples",
        type=Path,
        default=None,
        help="Optional JSONL file with curated few-shot category examples",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=4,
        help="Max concurrent classifications (default: 4, range: 1-10)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use an in-memory taxonomy store (no database reads or writes)",
    )
    parser.add_argument(
        "--taxonomy",
        type=Path,
        default=None,
        help="Seed the dry-run store from a taxonomy snapshot JSON file",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("scripts/production/classification/output"),
        help="Output directory for results (default: scripts/production/classification/output)",
    )

    args = parser.parse_args()

    if args.concurrency < 1 or args.concurrency > 10:
        parser.error("--concurrency must be between 1 and 10")
    if not args.input.exists():
        parser.error(f"Input file does not exist: {args.input}")
    if args.examples and not args.examples.exists():
        parser.error(f"Examples file does not exist: {args.examples}")
    if args.taxonomy and not args.dry_run:
        parser.error("--taxonomy is only valid together with --dry-run")

    return args


async def main() -> int:
    """
    Main entry point with full lifecycle management.

    Returns:
        Exit code (0=success, 1=error)
    """
    load_dotenv()
    args = parse_args()

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    logs_dir = args.output_dir / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"classification_{timestamp}.log"

    configure_logging(enable_file_logging=True, log_file_path=str(log_file))

    logger.info("=" * 80)
    logger.info("BATCH CLASSIFICATION STARTED")
    logger.info("=" * 80)
    logger.info(f"Input file: {args.input}")
    logger.info(f"Concurrency: {args.concurrency}")
    logger.info(f"Dry-run mode: {args.dry_run}")
    logger.info(f"Log file: {log_file}")

    try:
        materials = load_jsonl(args.input, ClassificationRequest)
        examples: list[CategoryExample] = (
            load_jsonl(args.examples, CategoryExample) if args.examples else []
        )
        requests = [m.model_copy(update={"examples": examples}) for m in materials]

        dry_run_store: InMemoryTaxonomyStore | None = None
        if args.dry_run:
            snapshot = TaxonomySnapshot()
            if args.taxonomy:
                snapshot = TaxonomySnapshot.model_validate_json(
                    args.taxonomy.read_text(encoding="utf-8")
                )
            dry_run_store = InMemoryTaxonomyStore(snapshot)
            preference_store = dry_run_store
        else:
            await db_config.create_pool(
                min_size=args.concurrency,
                max_size=args.concurrency * 2,
                command_timeout=60.0,
            )
            preference_store = PostgresModelPreferenceStore()

        try:
            gateway = AdkModelGateway(
                default_model=await preference_store.get_default_model(),
                preference_store=preference_store,
            )
            gateway.require_credentials()

            stats = BatchStatistics(total=len(requests))
            if not requests:
                logger.warning("No materials to classify (empty input)")
                return 0

            outcomes = await classify_materials_concurrent(
                requests=requests,
                gateway=gateway,
                stats=stats,
                max_concurrency=args.concurrency,
                dry_run_store=dry_run_store,
            )

            outcome_file = write_outcomes(outcomes, args.output_dir, timestamp)
            generate_final_report(
                stats=stats,
                output_dir=args.output_dir,
                timestamp=timestamp,
                input_file=str(args.input),
                concurrency=args.concurrency,
                dry_run=args.dry_run,
                model=gateway.default_model,
            )

            console = Console()
            console.print()
            console.print(create_statistics_table(stats))
            console.print(f"  Outcomes: {outcome_file}")
            console.print(f"  Logs:     {log_file}")
            console.print()

            logger.info("=" * 80)
            logger.info("BATCH CLASSIFICATION COMPLETED")
            logger.info(f"Classified: {stats.classified}/{stats.total}, errors: {stats.errors}")
            logger.info("=" * 80)
            return 0

        finally:
            if not args.dry_run:
                logger.info(f"Connection pool stats: {db_config.get_pool_stats()}")
                await db_config.close_pool()

    except MissingCredentialError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
