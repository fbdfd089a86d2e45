#!/usr/bin/env python3
"""
Normalize a submission from the command line.

Reads a RawSubmission as JSON and prints the normalized result, so the
engine can be exercised without a database.

Usage:
    # Create mode
    python scripts/normalize_submission.py create submission.json

    # Edit mode against a stored document (JSON row with or without an id)
    python scripts/normalize_submission.py edit change.json --existing stored.json

    # Read the submission from stdin, skip link preview lookups
    cat submission.json | python scripts/normalize_submission.py create - --no-enrich

    # Print Prometheus metrics for the run to stderr
    python scripts/normalize_submission.py create submission.json --metrics
"""

import argparse
import asyncio
import json
import sys

from pydantic import ValidationError as PydanticValidationError

from nugget_engine.config.settings import get_settings
from nugget_engine.core.exceptions import NuggetEngineError
from nugget_engine.core.logging import configure_logging
from nugget_engine.models.schemas import RawSubmission
from nugget_engine.monitoring.metrics import render_metrics
from nugget_engine.normalization.pipeline import ContentNormalizer
from nugget_engine.storage.memory import InMemoryContentStore


def load_json(path: str) -> dict:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def print_diagnostics(diagnostics) -> None:
    if not diagnostics:
        return
    print("\nDiagnostics:", file=sys.stderr)
    for diagnostic in diagnostics:
        detail = ", ".join(f"{k}={v}" for k, v in diagnostic.detail.items())
        print(f"  - {diagnostic.code.value}: {detail}", file=sys.stderr)


async def run(args: argparse.Namespace) -> int:
    try:
        return await normalize(args)
    finally:
        if args.metrics:
            body, _ = render_metrics()
            sys.stderr.write(body.decode("utf-8"))


async def normalize(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.no_enrich:
        settings = settings.model_copy(update={"enrichment_enabled": False})
    configure_logging(settings)

    submission = RawSubmission.model_validate(load_json(args.submission))

    if args.mode == "create":
        async with ContentNormalizer(settings=settings) as normalizer:
            result = await normalizer.normalize_for_create(submission)
        print(result.content.model_dump_json(indent=2))
        print_diagnostics(result.diagnostics)
        return 0

    row = load_json(args.existing)
    content_id = str(row.get("id") or "cli-existing")
    store = InMemoryContentStore()
    store.seed(content_id, row)

    async with ContentNormalizer(store=store, settings=settings) as normalizer:
        result = await normalizer.normalize_for_edit(submission, content_id)

    if args.apply:
        stored = await store.apply_update(content_id, result.payload)
        print(stored.model_dump_json(indent=2))
    else:
        print(json.dumps(result.payload.to_update_dict(), indent=2))
    print_diagnostics(result.diagnostics)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Normalize a content submission",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("mode", choices=["create", "edit"], help="Normalization mode")
    parser.add_argument("submission", help="Submission JSON file, or - for stdin")
    parser.add_argument(
        "--existing", "-e",
        help="Stored document JSON (required for edit)",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Edit mode: print the document after applying the update payload",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Dump Prometheus metrics to stderr when done",
    )
    parser.add_argument(
        "--no-enrich",
        action="store_true",
        help="Skip link preview lookups",
    )

    args = parser.parse_args()
    if args.mode == "edit" and not args.existing:
        parser.error("edit mode requires --existing")

    try:
        sys.exit(asyncio.run(run(args)))
    except PydanticValidationError as e:
        print(f"Invalid submission: {e}", file=sys.stderr)
        sys.exit(2)
    except NuggetEngineError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
