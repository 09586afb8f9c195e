"""
Command line entry point for the Icon Catalog Pipeline.

    icon-catalog generate   Describe and embed every icon of the library folder
    icon-catalog populate   Load dataset.json into PostgreSQL

Exit codes: 0 on success, 1 for missing configuration, 2 when the run
finished with failures.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from icon_catalog import __version__
from icon_catalog.config.settings import PipelineConfig, get_pipeline_config, validate_batch_size
from icon_catalog.core.batch_orchestrator import IconBatchOrchestrator
from icon_catalog.core.bulk_loader import IconBulkLoader, psycopg_connection_factory
from icon_catalog.core.dataset_store import IconDatasetStore
from icon_catalog.core.exceptions import ConfigurationError, DatasetCorruptError
from icon_catalog.core.metadata_generator import GeminiIconDescriber
from icon_catalog.core.throttle import FixedDelayThrottle

logger = logging.getLogger("icon_catalog")

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUN_FAILED = 2


def configure_logging(verbose: bool = False):
    level_name = "DEBUG" if verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="icon-catalog",
        description="Generate icon metadata with Gemini and load it into PostgreSQL"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="YAML file with configuration overrides")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Describe and embed every icon of the library")
    generate.add_argument("--icons-dir", help="Folder with <name>.svg/<name>.json files (default: <ICONS_ROOT>/<ICON_LIBRARY>)")
    generate.add_argument("--library", help="Icon library tag (default: ICON_LIBRARY)")
    generate.add_argument("--dataset", help="Dataset file (default: ICON_DATASET_PATH)")
    generate.add_argument("--delay-ms", type=int, help="Delay between icons in milliseconds")

    populate = subparsers.add_parser("populate", help="Insert the dataset into PostgreSQL")
    populate.add_argument("--dataset", help="Dataset file (default: ICON_DATASET_PATH)")
    populate.add_argument("--batch-size", type=int, help="Records per batch")
    populate.add_argument("--delay-ms", type=int, help="Delay between batches in milliseconds")

    return parser


def _delay_seconds(delay_ms: int) -> float:
    if delay_ms < 0:
        raise ConfigurationError(f"--delay-ms must be >= 0, got {delay_ms}")
    return delay_ms / 1000.0


def run_generate(config: PipelineConfig, args: argparse.Namespace) -> int:
    """Run the icon description pipeline."""
    if args.library:
        config.paths.library = args.library
    if args.dataset:
        config.paths.dataset_path = args.dataset
    if args.delay_ms is not None:
        config.generation.item_delay_seconds = _delay_seconds(args.delay_ms)

    api_key = config.require_api_key()
    icons_dir = args.icons_dir or config.paths.library_dir

    store = IconDatasetStore(config.paths.dataset_path)
    describer = GeminiIconDescriber(
        api_key=api_key,
        library=config.paths.library,
        store=store,
        model_name=config.generation.model_name,
        embedding_model=config.generation.embedding_model,
        temperature=config.generation.temperature,
        max_output_tokens=config.generation.max_output_tokens
    )
    orchestrator = IconBatchOrchestrator(
        describer=describer,
        library=config.paths.library,
        language=config.generation.language,
        throttle=FixedDelayThrottle(config.generation.item_delay_seconds)
    )

    try:
        summary = asyncio.run(orchestrator.process_directory(icons_dir))
    except DatasetCorruptError as e:
        logger.error(f"{e}. Fix or remove the dataset file and run again.")
        return EXIT_RUN_FAILED

    logger.info(
        f"Processed {summary['processed']}/{summary['total_pairs']} icons: "
        f"{summary['described']} added, {summary['skipped_existing']} already present, "
        f"{summary['failed']} failed"
    )
    return EXIT_OK if summary["failed"] == 0 else EXIT_RUN_FAILED


def run_populate(config: PipelineConfig, args: argparse.Namespace) -> int:
    """Load the dataset into PostgreSQL."""
    logger.info("Starting icon insertion process...")
    logger.info("Verifying environment variables...")
    config.database.require()

    dataset_path = args.dataset or config.paths.dataset_path
    batch_size = config.loader.batch_size
    if args.batch_size is not None:
        batch_size = validate_batch_size(args.batch_size, "--batch-size")
    delay_seconds = (
        _delay_seconds(args.delay_ms) if args.delay_ms is not None
        else config.loader.batch_delay_seconds
    )

    loader = IconBulkLoader(
        connection_factory=psycopg_connection_factory(**config.database.connection_kwargs()),
        throttle=FixedDelayThrottle(delay_seconds),
        table_name=config.loader.table_name,
        verify_each_record=config.loader.verify_each_record
    )

    try:
        result = loader.insert_from_file(dataset_path, batch_size=batch_size)
    finally:
        logger.info("Process finished")

    if not result.success:
        logger.error(f"Error inserting icons: {result.error}")
        return EXIT_RUN_FAILED

    logger.info(f"Successfully inserted {result.succeeded} icons ({result.failed} failed)")
    return EXIT_OK if result.failed == 0 else EXIT_RUN_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = get_pipeline_config(args.config)
        if args.command == "generate":
            return run_generate(config, args)
        return run_populate(config, args)
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    sys.exit(main())
