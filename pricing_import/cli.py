"""Command line entry point.

Usage:
    pricing-import validate blueprints/flyers.yaml
    pricing-import import blueprints/flyers.yaml --dry-run
    pricing-import import blueprints/flyers.yaml --snapshot-dir /var/pricing
"""
import argparse
import asyncio
import sys
from typing import List, Optional

import structlog

from pricing_import.config import configure_logging, get_settings
from pricing_import.errors.exceptions import PricingImportError
from pricing_import.models.blueprint import load_blueprint_file
from pricing_import.services.import_pipeline import run_import

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pricing-import",
        description="Import supplier price lists into the product catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check a descriptor without touching the network
  pricing-import validate blueprints/flyers.yaml

  # Scrape and price, write snapshots, skip the database
  pricing-import import blueprints/flyers.yaml --dry-run
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a descriptor file")
    validate.add_argument("descriptor", help="Path to the YAML descriptor")

    run = subparsers.add_parser("import", help="Run an import")
    run.add_argument("descriptor", help="Path to the YAML descriptor")
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="Scrape, price and write snapshots without touching the database",
    )
    run.add_argument(
        "--snapshot-dir",
        help="Root directory for pricing_raw/ and pricing_clean/ (default: SNAPSHOT_DIR)",
    )
    return parser


def _validate(descriptor: str) -> int:
    loaded = load_blueprint_file(descriptor)
    blueprint = loaded.blueprint
    print(
        f"ok: {loaded.file_path} "
        f"({blueprint.pricing_import.type}, product {blueprint.product.slug})"
    )
    return 0


def _import(descriptor: str, dry_run: bool, snapshot_dir: Optional[str]) -> int:
    report = asyncio.run(run_import(descriptor, dry_run=dry_run, snapshot_dir=snapshot_dir))
    for line in report.summary_lines():
        print(line)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.is_production)

    try:
        if args.command == "validate":
            return _validate(args.descriptor)
        return _import(args.descriptor, args.dry_run, args.snapshot_dir)
    except PricingImportError as e:
        logger.error("command_failed", command=args.command, error=e.message, details=e.details)
        print(f"error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
