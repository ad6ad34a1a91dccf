#!/usr/bin/env python3
"""
Terraform Graph Import Orchestrator: Merge + Semantic Analysis + Neo4j.

Three-stage pipeline:
1. Document: Load .tf files, resolve dependencies, build the bounded analysis document
2. Analyze: Extract resources and relationships with the semantic analyzer
3. Materialize: Replace (or incrementally merge) the Neo4j resource graph

Usage:
    python run_import.py --input ./infrastructure
    python run_import.py --input infra.zip --incremental
    python run_import.py --input ./infrastructure --document-only --document-out output/doc.txt
    python run_import.py --input ./infrastructure --mock-analyzer
"""

import argparse
import json
import logging
import os
import sys
import time

from core.structured_logging import (
    configure_structured_logging,
    get_stage_durations,
    set_import_id,
    stage_scope,
)
from core.startup_config import (
    ConfigValidationError,
    resolve_strict_config_validation,
    validate_startup_config,
)
from core.run_artifacts import write_import_report, write_text_artifact

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_OUT = "output/analysis_document.txt"


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Terraform Graph Import: merge, analyze and load into Neo4j",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python run_import.py --input ./infrastructure\n"
            "  python run_import.py --input infra.zip --incremental\n"
        ),
    )

    parser.add_argument(
        "--input",
        required=True,
        help="Directory of .tf files or a .zip archive",
    )
    parser.add_argument(
        "--incremental",
        action="store_true",
        default=False,
        help="Upsert into the existing graph instead of replacing it",
    )
    parser.add_argument(
        "--max-length",
        type=int,
        default=None,
        help="Maximum analysis document length in characters (default: MAX_DOCUMENT_LENGTH)",
    )
    parser.add_argument(
        "--document-only",
        action="store_true",
        default=False,
        help="Write the analysis document and stop before analysis",
    )
    parser.add_argument(
        "--document-out",
        default=DEFAULT_DOCUMENT_OUT,
        help=f"Where to write the analysis document (default: {DEFAULT_DOCUMENT_OUT})",
    )
    parser.add_argument(
        "--mock-analyzer",
        action="store_true",
        default=False,
        help="Use the deterministic mock analyzer (no API calls)",
    )
    parser.add_argument(
        "--strict-config",
        action="store_true",
        default=resolve_strict_config_validation(default=False),
        help=(
            "Enable strict startup config validation. "
            "Fail fast on docker-compose parse/config errors."
        ),
    )

    return parser.parse_args(argv)


def stage1_document(input_path: str, max_length: int | None):
    """Stage 1: Load files and build the bounded analysis document.

    Returns:
        Tuple of (files, formatted document, parse outcome).
    """
    from extraction.extractor import load_source_files
    from extraction.parser import parse_source_files
    from merging.merger import merge_terraform_files

    logger.info("=" * 80)
    logger.info(" STAGE 1: Load + Merge Terraform Files")
    logger.info("=" * 80)
    logger.info("Input: %s", os.path.abspath(input_path))

    t0 = time.time()
    files = load_source_files(input_path)
    if not files:
        raise FileNotFoundError(f"No Terraform files found in {input_path}")
    document = merge_terraform_files(files, max_length=max_length)
    parse_outcome = parse_source_files(files)

    logger.info("Document built in %.2fs: %s", time.time() - t0, document.summary())
    logger.info("")
    return files, document, parse_outcome


def stage2_analyze(document, parse_outcome, use_mock: bool):
    """Stage 2: Run the semantic analyzer over the document."""
    from analysis.analyzer import get_analyzer

    logger.info("=" * 80)
    logger.info(" STAGE 2: Semantic Analysis")
    logger.info("=" * 80)

    if not document.is_ready_for_analysis():
        raise ValueError("Analysis document is empty; nothing to analyze")

    t0 = time.time()
    analyzer = get_analyzer(use_mock=True if use_mock else None)
    result = analyzer.analyze(document)
    result = result.with_fallback_properties(parse_outcome.resource_arguments())

    logger.info(
        "Analysis completed in %.2fs: %s",
        time.time() - t0,
        json.dumps(result.summary(), sort_keys=True),
    )
    logger.info("")
    return result


def stage3_materialize(analysis, incremental: bool):
    """Stage 3: Write the analyzed graph to Neo4j."""
    from graphstore.neo4j_loader import get_neo4j_driver, materialize_graph, merge_graph
    from graphstore.query import get_graph_statistics

    logger.info("=" * 80)
    logger.info(" STAGE 3: Materialize Graph (%s)", "incremental" if incremental else "replace")
    logger.info("=" * 80)

    driver = get_neo4j_driver()
    try:
        t0 = time.time()
        if incremental:
            stats = merge_graph(analysis, driver)
        else:
            stats = materialize_graph(analysis, driver)
        logger.info("Materialization completed in %.2fs: %s", time.time() - t0, stats)
        graph_stats = get_graph_statistics(driver)
        logger.info("Graph statistics: %s", json.dumps(graph_stats, sort_keys=True))
    finally:
        driver.close()
    logger.info("")
    return stats, graph_stats


def _finish_with_error(run_report: dict, import_id: str, message: str) -> None:
    run_report["error"] = message
    run_report["stage_durations_s"] = get_stage_durations()
    report_path = write_import_report(run_report, import_id)
    logger.info("Import report written: %s", report_path)
    sys.exit(1)


def main(argv=None) -> None:
    """Main entry point for the import pipeline."""

    configure_structured_logging(level=logging.INFO)

    args = parse_args(argv)
    import_id = set_import_id()
    os.environ["STRICT_CONFIG_VALIDATION"] = "true" if args.strict_config else "false"

    logger.info("")
    logger.info("*" * 80)
    logger.info(" Terraform Graph Import: .tf -> Analysis -> Neo4j")
    logger.info(" Import ID: %s", import_id)
    logger.info("*" * 80)
    logger.info("")

    run_report = {
        "import_id": import_id,
        "pipeline": "terraform_import",
        "input": args.input,
        "mode": "incremental" if args.incremental else "replace",
        "status": "failed",
        "strict_config": args.strict_config,
        "mock_analyzer": args.mock_analyzer,
    }

    try:
        if not args.document_only:
            validate_startup_config(
                compose_path="infra_context/docker-compose.yml",
                required_services=("neo4j",),
                strict=args.strict_config,
            )

        with stage_scope("stage1_document"):
            files, document, parse_outcome = stage1_document(args.input, args.max_length)
        run_report["document"] = {
            "files": len(files),
            "total_resources": document.total_resources,
            "providers": document.providers,
            "parse": parse_outcome.to_dict(),
            **{k: v for k, v in document.metadata.items() if k != "formatting_timestamp"},
        }

        if args.document_only:
            path = write_text_artifact(document.text, args.document_out)
            logger.info("Analysis document written: %s", path)
            run_report["document_path"] = path
            run_report["status"] = "success"
            run_report["stage_durations_s"] = get_stage_durations()
            report_path = write_import_report(run_report, import_id)
            logger.info("Import report written: %s", report_path)
            return

        with stage_scope("stage2_analyze"):
            analysis = stage2_analyze(document, parse_outcome, args.mock_analyzer)
        run_report["analysis"] = analysis.summary()

        with stage_scope("stage3_materialize"):
            stats, graph_stats = stage3_materialize(analysis, args.incremental)
        run_report["materialization"] = stats.to_report()
        run_report["graph"] = graph_stats
        run_report["status"] = "success"
        run_report["stage_durations_s"] = get_stage_durations()

        logger.info("*" * 80)
        logger.info(" Terraform graph import finished successfully")
        logger.info("*" * 80)
        report_path = write_import_report(run_report, import_id)
        logger.info("Import report written: %s", report_path)

    except ConfigValidationError as e:
        logger.error("Configuration error: %s", e)
        _finish_with_error(run_report, import_id, str(e))
    except FileNotFoundError as e:
        logger.error("File error: %s", e)
        _finish_with_error(run_report, import_id, str(e))
    except ConnectionError as e:
        logger.error("Neo4j connection error: %s", e)
        _finish_with_error(run_report, import_id, str(e))
    except Exception as e:
        logger.error("Import failed: %s", e, exc_info=True)
        _finish_with_error(run_report, import_id, str(e))


if __name__ == "__main__":
    main()
