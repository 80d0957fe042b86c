"""CLI entry point.

This script runs one Apify actor job described by a JSON job document, waits
for it, and writes the normalized response (new state + export items) to disk.

Examples:
    python run_job.py --list-actors
    python run_job.py --actor-type tripadvisor --job job.json --out response.json
    python run_job.py --job arbitrary_job.json --out response.json

The output is the serialized JobResponse: {"state": "<json>", "result": [...]}.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

import pydantic
import structlog

from apify_connector.actors import get_actor_metadata, list_available_actors
from apify_connector.config import Settings
from apify_connector.errors import ConnectorError
from apify_connector.logging import configure_logging
from apify_connector.service import JobDocument, run_job_document


logger = structlog.get_logger("run_job")


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run an Apify actor job and normalize its results.")
    p.add_argument("--job", type=str, default=None, help="Job document JSON file.")
    p.add_argument("--out", type=str, default="response.json", help="Output JSON file path.")
    p.add_argument(
        "--actor-type",
        type=str,
        default=None,
        help="Preset actor type (e.g. web_scraper). Omit to run settings.actor_id as-is.",
    )
    p.add_argument("--list-actors", action="store_true", help="Print available actor presets and exit.")
    p.add_argument("--schema", type=str, default=None, help="Print the schema of one actor preset and exit.")
    return p.parse_args()


def main() -> int:
    args = parse_args()
    settings = Settings()
    configure_logging(settings.log_level, json=settings.log_json)

    if args.list_actors:
        print(json.dumps(list_available_actors(), indent=2))
        return 0

    if args.schema:
        metadata = get_actor_metadata(args.schema)
        if metadata is None:
            print(f"Unknown actor type: {args.schema}", file=sys.stderr)
            return 2
        print(json.dumps(metadata, indent=2))
        return 0

    if not args.job:
        print("--job is required", file=sys.stderr)
        return 2

    job_path = Path(args.job).expanduser().resolve()
    try:
        job = JobDocument.model_validate_json(job_path.read_text(encoding="utf-8"))
    except (OSError, pydantic.ValidationError) as exc:
        logger.error("invalid_job_document", path=str(job_path), error=str(exc))
        return 2

    try:
        response = asyncio.run(run_job_document(job, actor_type=args.actor_type, settings=settings))
    except ConnectorError as exc:
        logger.error("job_execution_failed", error=str(exc), error_type=type(exc).__name__)
        return 1

    out_path = Path(args.out).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(response.model_dump_json(indent=2), encoding="utf-8")

    print(f"Wrote {len(response.result)} items to: {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
