# main.py
"""
Entry Point: Listing Search

Purpose
-------
Run one search over a listings file from the command line:
  1) Load settings (built-in defaults, or --config JSON) and configure logging.
  2) Load the candidate listings and the optional commune / district catalogues.
  3) Fold the query into filters, rank the candidates, and print:
       - the parsed filter summary,
       - ranked results (ref, score, title, price, location),
       - query suggestions (with --suggest),
       - recovery actions when nothing matches.

Design
------
- Thin CLI; all behavior lives in SearchSession.
- Remote services follow the settings file; with no settings the run is fully offline.

Usage
-----
    python main.py --listings data/listings.json
    python main.py --listings data/listings.json --communes data/communes.json \
                   --districts data/districts.json --query "T3 Bir El Djir vue mer" --limit 5 --suggest
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from listing_search.core.filters import parsed_summary
from listing_search.core.normalize.text import normalize_ref
from listing_search.inputs.settings import SettingsLoader
from listing_search.logging_setup import configure_logging
from listing_search.orchestrator.session import SearchSession
from listing_search.schemas.labels import SortMode


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    p = argparse.ArgumentParser(description="Listing search: filter and rank marketplace listings")
    p.add_argument("--listings", type=str, required=True, help="Path to a JSON array of listings.")
    p.add_argument("--communes", type=str, default=None, help="Path to a JSON array of commune names.")
    p.add_argument("--districts", type=str, default=None, help="Path to a JSON array of {name, commune} rows.")
    p.add_argument("--query", type=str, default="", help="Free-text query.")
    p.add_argument(
        "--sort",
        type=str,
        default=SortMode.relevance.value,
        choices=[m.value for m in SortMode],
        help="Sort mode (default: relevance).",
    )
    p.add_argument("--limit", type=int, default=10, help="Max results printed (default 10).")
    p.add_argument("--config", type=str, default=None, help="Path to a settings JSON file.")
    p.add_argument("--suggest", action="store_true", help="Also print query suggestions.")
    return p.parse_args(argv)


def read_json_array(path: str, what: str) -> list[Any]:
    """Read a JSON array from ``path``; raises ValueError with a readable message otherwise."""
    p = Path(path)
    if not p.exists():
        raise ValueError(f"{what} file not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid {what} JSON in {p}: {e}") from e
    if not isinstance(data, list):
        raise ValueError(f"Invalid {what} JSON in {p}: root must be an array")
    return data


def build_session(args: argparse.Namespace) -> SearchSession:
    settings = SettingsLoader().load(args.config)
    configure_logging(settings.log_level, settings.log_file)

    listings = read_json_array(args.listings, "listings")
    communes = [str(c) for c in read_json_array(args.communes, "communes")] if args.communes else None
    districts = read_json_array(args.districts, "districts") if args.districts else []
    try:
        session = SearchSession(listings, communes, districts, settings=settings)
    except ValidationError as e:
        raise ValueError(f"Invalid listing or district rows:\n{e}") from e
    session.update(sort_mode=SortMode(args.sort))
    return session


def print_report(session: SearchSession, limit: int, suggest: bool) -> None:
    found = session.results()

    summary = parsed_summary(session.filters)
    print("Filters: " + (", ".join(summary) if summary else "(none)"))

    insights = session.insights(found)
    print(f"Results: {insights.visible} / {insights.total}")
    for item in found.results[: max(0, limit)]:
        score = found.scores.get(normalize_ref(item.ref), 0.0)
        print(f"  {item.ref:<12} {score:7.1f}  {item.title}  |  {item.price or '-'}  |  {item.location or '-'}")

    if suggest:
        rows = session.suggestions()
        print("Suggestions:" if rows else "Suggestions: (none)")
        for s in rows:
            print(f"  [{s.type.value}] {s.label} ({s.match_count})")

    if not found.results:
        actions = session.recovery_actions()
        print("No results. Try:")
        for action in actions:
            print(f"  - {action.label}: {action.hint}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        session = build_session(args)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    if args.query:
        session.set_query(args.query)
        session.commit_query()
    print_report(session, args.limit, args.suggest)
    session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
