#!/usr/bin/env python3
"""
Backfill Runner
Runs one summary, disciplines or majors backfill against a JSONL catalog.

Usage:
    python scripts/run_backfill.py disciplines --catalog data/opportunities.jsonl
    python scripts/run_backfill.py summary --max-candidates 25 --progress
"""

import argparse
import asyncio
import sys

from rich.console import Console

from research_match.coordinator import PipelineCoordinator
from research_match.exceptions import ConfigurationError, ConfigurationMissing
from research_match.models.match import BACKFILL_KINDS
from research_match.utils.catalog_store import JsonlCatalogStore

console = Console()

OUTCOME_MESSAGES = {
    "no_candidates": "[yellow]No new items required processing.[/yellow]",
    "completed": "[green]All selected items processed.[/green]",
    "partial_failure": "[red]Some items failed, check logs.[/red]",
}


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("kind", choices=BACKFILL_KINDS)
    parser.add_argument("--catalog", default="data/opportunities.jsonl")
    parser.add_argument("--config", default="config/system_params.json")
    parser.add_argument("--max-candidates", type=int, default=None)
    parser.add_argument("--progress", action="store_true", help="Show a progress bar")
    return parser.parse_args(argv)


async def main(argv: list[str]) -> int:
    args = parse_args(argv)

    try:
        coordinator = PipelineCoordinator(
            JsonlCatalogStore(args.catalog), config_path=args.config
        )
        if args.progress:
            coordinator.params.backfill.show_progress = True
        run = await coordinator.run_backfill(args.kind, max_candidates=args.max_candidates)
    except (ConfigurationMissing, ConfigurationError) as e:
        console.print(f"[red][X] {e}[/red]")
        return 2

    console.print(
        f"Backfill [bold]{run.kind}[/bold]: {run.succeeded}/{run.total} succeeded, "
        f"{run.failed} failed"
    )
    console.print(OUTCOME_MESSAGES[run.outcome])
    return 1 if run.failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
