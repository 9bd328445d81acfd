"""
Funnel CLI: inspect and exercise the targeting engine from the terminal.

Commands:
- funnel plan   - Show the slot assignment for the next batch
- funnel rate   - Apply one answered item to a saved state file
- funnel score  - Rank candidate items for a concept

All file reading and writing happens here; the engine itself stays pure.
"""
from __future__ import annotations

import json
import random
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.funnel import (
    AnkiRating,
    CandidateItem,
    apply_anki_rating,
    build_guide_concept_universe,
    compute_priority,
    dump_funnel_state,
    load_funnel_state,
    plan_batch,
    rank_candidates,
)
from src.funnel.priority import current_time_ms

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="funnel",
    help="Concept funnel: adaptive practice targeting",
    no_args_is_help=True,
)
console = Console()

STYLES = {
    "explore": "bold cyan",
    "focus": "bold yellow",
    "missing": "dim",
}


def configure_logging() -> None:
    """Route loguru output to stderr (and an optional file) at the configured level."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")


# =============================================================================
# File Helpers
# =============================================================================


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise typer.BadParameter(f"Cannot read JSON from {path}: {exc}") from exc


def _read_outline(path: Path) -> list[str]:
    """Outline titles from a JSON list or a plain text file (one per line)."""
    if path.suffix.lower() == ".json":
        data = _read_json(path)
        if not isinstance(data, list):
            raise typer.BadParameter(f"{path} must contain a JSON list of titles")
        return [str(entry.get("title", "")) if isinstance(entry, dict) else str(entry) for entry in data]
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise typer.BadParameter(f"Cannot read outline {path}: {exc}") from exc
    return [line.strip().lstrip("-*# ").strip() for line in lines if line.strip()]


def _read_items(path: Path) -> list[CandidateItem]:
    data = _read_json(path)
    entries = data if isinstance(data, list) else [data]
    items: list[CandidateItem] = []
    for entry in entries:
        if not isinstance(entry, dict):
            logger.warning(f"Skipping non-object item entry in {path}")
            continue
        items.append(CandidateItem.from_dict(entry))
    return items


def _read_state(path: Optional[Path]):
    if path is None or not path.exists():
        return load_funnel_state(None)
    return load_funnel_state(_read_json(path))


def _write_state(path: Path, state) -> None:
    path.write_text(json.dumps(dump_funnel_state(state), indent=2), encoding="utf-8")


# =============================================================================
# Commands
# =============================================================================


@app.command()
def plan(
    outline: Path = typer.Argument(..., help="Outline titles (.json list or text, one per line)"),
    state_file: Optional[Path] = typer.Option(None, "--state", help="Saved funnel state JSON"),
    items_file: Optional[Path] = typer.Option(None, "--items", help="Candidate items JSON"),
    total: int = typer.Option(10, "--total", "-n", help="Batch size"),
    explore_ratio: Optional[float] = typer.Option(None, "--explore-ratio", help="Share of explore slots"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for tie-breaking"),
) -> None:
    """Show which concept each slot of the next batch targets."""
    state = _read_state(state_file)
    guide = build_guide_concept_universe(_read_outline(outline), state)
    if not guide:
        console.print("[yellow]No concepts found in outline or state.[/yellow]")
        raise typer.Exit(0)

    pools = [_read_items(items_file)] if items_file else []
    now = current_time_ms()
    batch = plan_batch(
        guide,
        state,
        pools,
        total,
        explore_ratio=explore_ratio,
        now_ms=now,
        rng=random.Random(seed) if seed is not None else None,
    )
    explore = set(batch.selection.explore_targets)
    table = Table(title=f"Next batch ({batch.total} slots)")
    table.add_column("#", justify="right")
    table.add_column("Concept")
    table.add_column("Slot")
    table.add_column("Priority", justify="right")
    table.add_column("Attempts", justify="right")
    if pools:
        table.add_column("Item")

    for slot, key in enumerate(batch.selection.targets_per_question):
        concept = state.concepts[key]
        kind = "explore" if key in explore else "focus"
        row = [
            str(slot + 1),
            concept.display_name or key,
            f"[{STYLES[kind]}]{kind}[/{STYLES[kind]}]",
            f"{compute_priority(concept, now):.3f}",
            str(concept.attempts),
        ]
        if pools:
            item_id = batch.item_ids_per_slot[slot]
            row.append(item_id or f"[{STYLES['missing']}]missing[/{STYLES['missing']}]")
        table.add_row(*row)

    console.print(table)
    if pools and batch.missing_targets:
        console.print(f"[dim]{len(batch.missing_targets)} slot(s) need generated items.[/dim]")


@app.command()
def rate(
    state_file: Path = typer.Argument(..., help="Funnel state JSON (created if missing)"),
    item_file: Path = typer.Argument(..., help="Answered item JSON"),
    correct: bool = typer.Option(..., "--correct/--wrong", help="Whether the answer was correct"),
    rating: str = typer.Option("good", "--rating", "-r", help="again, hard, good or easy"),
    time_ms: Optional[int] = typer.Option(None, "--time-ms", help="Response latency in ms"),
    tutor: bool = typer.Option(False, "--tutor", help="A hint/tutor was consulted first"),
) -> None:
    """Apply one answered item to a saved state file."""
    items = _read_items(item_file)
    if not items:
        raise typer.BadParameter(f"No item found in {item_file}")

    state = _read_state(state_file)
    outcome = apply_anki_rating(
        state,
        items[0],
        is_correct=correct,
        anki_rating=AnkiRating.parse(rating),
        time_to_answer_ms=time_ms,
        tutor_used_before_answer=tutor,
        now_ms=current_time_ms(),
    )
    _write_state(state_file, state)

    console.print(
        f"Updated {len(outcome.updated_concept_keys)} concept(s) "
        f"with success weight [bold]{outcome.success_weight:.2f}[/bold]"
    )
    for key in outcome.updated_concept_keys:
        concept = state.concepts[key]
        console.print(f"  {concept.display_name or key}: alpha={concept.alpha:.2f} beta={concept.beta:.2f}")


@app.command()
def score(
    items_file: Path = typer.Argument(..., help="Candidate items JSON"),
    concept: str = typer.Argument(..., help="Concept display name"),
    limit: int = typer.Option(10, "--limit", help="Rows to show"),
) -> None:
    """Rank candidate items by how well they test a concept."""
    ranked = rank_candidates(_read_items(items_file), concept)

    table = Table(title=f"Relevance for '{concept}'")
    table.add_column("Score", justify="right")
    table.add_column("Item")
    table.add_column("Tags")
    for value, item in ranked[:limit]:
        table.add_row(f"{value:.2f}", item.id, ", ".join(item.concept_tags))
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    run()
