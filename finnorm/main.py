"""CLI entry point for the financial normalization pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from finnorm.batch import CONTINUE, STRICT, BatchEngine, BatchOptions
from finnorm.data import CompanyStore, load_directory, load_payload
from finnorm.data.models import COMPANY_TYPES
from finnorm.parsers.detector import detect_sector
from finnorm.runner import CompanyAnalysis, analyze_payload, import_company

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="finnorm",
        description="Sector-aware financial statement normalization and ratios",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # detect command
    detect_parser = subparsers.add_parser(
        "detect", help="Classify a payload as finance or non-finance"
    )
    detect_parser.add_argument("file", type=Path, help="Payload JSON file")
    detect_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # analyze command
    analyze_parser = subparsers.add_parser(
        "analyze", help="Normalize one payload and print ratios and findings"
    )
    analyze_parser.add_argument("file", type=Path, help="Payload JSON file")
    analyze_parser.add_argument(
        "--sector",
        choices=COMPANY_TYPES,
        default=None,
        help="Company type (default: from payload, else detected)",
    )
    analyze_parser.add_argument(
        "--derive-multiples",
        action="store_true",
        help="Derive P/E and P/B from EPS and book value per share",
    )
    analyze_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    # batch command
    batch_parser = subparsers.add_parser(
        "batch", help="Calculate ratios for a directory of payloads"
    )
    batch_parser.add_argument("directory", type=Path, help="Directory of payload JSON files")
    batch_parser.add_argument(
        "--output",
        type=Path,
        default=Path("output/ratios.csv"),
        help="Output CSV path (default: output/ratios.csv)",
    )
    batch_parser.add_argument(
        "--sector",
        choices=COMPANY_TYPES,
        default=None,
        help="Company type for every file (default: per file)",
    )
    batch_parser.add_argument(
        "--strict",
        action="store_true",
        help="Abort the batch on the first failed company",
    )
    batch_parser.add_argument(
        "--parallel",
        action="store_true",
        help="Process chunks of companies on worker threads",
    )
    batch_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Worker count in parallel mode (default: min(ceil(n/50), 4))",
    )
    batch_parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Also import each company into this sqlite database",
    )
    batch_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args(argv)


def _analysis_summary(analysis: CompanyAnalysis) -> dict[str, Any]:
    summary: dict[str, Any] = {
        "company_id": analysis.company_id,
        "company_type": analysis.company_type,
        "success": analysis.success,
        "errors": list(analysis.errors),
    }
    if not analysis.success:
        return summary
    summary["data_warnings"] = list(analysis.data_warnings)
    summary["ratios"] = analysis.ratios.flat(analysis.company_type)
    summary["ttm"] = asdict(analysis.ttm) if analysis.ttm is not None else None
    validation = analysis.validation
    if validation is not None:
        summary["validation"] = {
            "is_valid": validation.is_valid,
            "quality_score": validation.quality_score,
            "findings": [
                {"type": f.type, "severity": f.severity, "message": f.message}
                for f in validation.errors + validation.warnings
            ],
        }
    return summary


def run_detect(args: argparse.Namespace) -> int:
    """Execute the detect command.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Exit code.
    """
    try:
        with open(args.file, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        logger.error("%s: %s", args.file, exc)
        return 1
    classification = detect_sector(data)
    print(json.dumps({
        "sector": classification.sector,
        "sub_sector": classification.sub_sector,
        "confidence": round(classification.confidence, 4),
        "indicators": sorted(classification.indicators),
        "warnings": sorted(classification.warnings),
        "errors": list(classification.errors),
    }, indent=2))
    return 1 if classification.errors else 0


def run_analyze(args: argparse.Namespace) -> int:
    """Execute the analyze command.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Exit code.
    """
    try:
        payload = load_payload(args.file, args.sector)
    except (OSError, ValueError) as exc:
        logger.error("%s: %s", args.file, exc)
        return 1

    analysis = analyze_payload(payload, derive_multiples=args.derive_multiples)
    print(json.dumps(_analysis_summary(analysis), indent=2))
    return 0 if analysis.success else 1


def run_batch(args: argparse.Namespace) -> int:
    """Execute the batch command.

    Args:
        args: Parsed CLI arguments.

    Returns:
        Exit code.
    """
    if args.workers is not None and args.workers <= 0:
        logger.error("--workers must be positive, got %d", args.workers)
        return 1

    payloads = load_directory(args.directory, args.sector)
    if not payloads:
        logger.error("No payloads found in %s", args.directory)
        return 1

    engine = BatchEngine()
    result = engine.calculate_batch(
        payloads,
        BatchOptions(
            parallel=args.parallel,
            error_handling=STRICT if args.strict else CONTINUE,
            worker_count=args.workers,
            validate=True,
        ),
    )
    if not result.success:
        logger.error("Batch aborted: a company failed in strict mode")
        return 1

    output: Path = args.output
    output.parent.mkdir(parents=True, exist_ok=True)
    result.to_frame().to_csv(output, index=False)

    metrics = result.metrics
    logger.info(
        "Results: %d companies (%d non-finance, %d finance, %d errors), written to %s",
        len(result.results),
        metrics.non_finance_count,
        metrics.finance_count,
        metrics.error_count,
        output,
    )

    if args.db is not None:
        store = CompanyStore(args.db)
        # Results keep input order, one per payload.
        imported = sum(
            1
            for payload, company in zip(payloads, result.results)
            if import_company(payload, store, analysis=company.analysis).success
        )
        logger.info("Imported %d/%d companies into %s", imported, len(payloads), args.db)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point.

    Args:
        argv: Argument list (defaults to sys.argv[1:]).
    """
    args = _parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "detect":
        code = run_detect(args)
    elif args.command == "analyze":
        code = run_analyze(args)
    elif args.command == "batch":
        code = run_batch(args)
    else:
        logger.error("Unknown command: %s", args.command)
        sys.exit(1)

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
