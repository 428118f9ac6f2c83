"""Command-line entry point: run a match search over reports in a JSON file.

The file holds either {"lost": [...], "found": [...]} or a flat list of
reports each carrying a "kind" of "lost" or "found".
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from lostfound.core.bootstrap import create_matching_engine
from lostfound.core.config import get_settings
from lostfound.core.errors import ClassifierInitializationError
from lostfound.core.logging import setup_logging
from lostfound.core.matching.models import MatchSearchResult, Report, ReportKind
from lostfound.core.matching.search import split_reports

logger = structlog.get_logger("lostfound.cli")

_reports_adapter = TypeAdapter(list[Report])


def load_reports(path: Path) -> tuple[list[Report], list[Report]]:
    """Read lost and found reports from a JSON file.

    Raises:
        ValueError: If the file is not in one of the accepted shapes
    """
    data: Any = json.loads(path.read_text(encoding="utf-8"))

    if isinstance(data, dict):
        lost = [{**item, "kind": ReportKind.LOST} for item in data.get("lost", [])]
        found = [{**item, "kind": ReportKind.FOUND} for item in data.get("found", [])]
        return _reports_adapter.validate_python(lost), _reports_adapter.validate_python(found)

    if isinstance(data, list):
        return split_reports(_reports_adapter.validate_python(data))

    raise ValueError("Expected a JSON object with 'lost'/'found' keys or a list of reports")


def format_result(result: MatchSearchResult) -> str:
    """Render ranked candidates as plain text lines."""
    lines = [f"{result.pairs_compared} pairs compared, {len(result.candidates)} candidates"]
    for rank, candidate in enumerate(result.candidates, start=1):
        sim = candidate.similarity
        lines.append(
            f"{rank:>3}. lost={candidate.lost_report.id} found={candidate.found_report.id} "
            f"score={sim.score:.1%} text={sim.text_score:.3f} image={sim.image_score:.3f}"
        )
    if result.persistence_error:
        lines.append(f"warning: matches were not saved: {result.persistence_error}")
    return "\n".join(lines)


async def run(reports_file: Path, threshold: float | None) -> MatchSearchResult:
    """Load reports, build the engine and run one search."""
    lost, found = load_reports(reports_file)
    engine = await create_matching_engine()
    try:
        return await engine.search.find_matches(lost, found, threshold=threshold)
    finally:
        await engine.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lostfound-match",
        description="Propose matches between lost and found item reports",
    )
    parser.add_argument("reports", type=Path, help="JSON file with lost and found reports")
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Keep pairs scoring above this confidence (default: matching config, 0.3)",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(
        debug=settings.log_debug,
        logs_dir=settings.logs_dir if settings.log_to_file else None,
    )

    try:
        result = asyncio.run(run(args.reports, args.threshold))
    except (OSError, ValueError, ValidationError) as e:
        logger.error("Cannot read reports", path=str(args.reports), error=str(e))
        return 2
    except ClassifierInitializationError as e:
        logger.error("Image classifier unavailable", error=str(e))
        return 3

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print(format_result(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
