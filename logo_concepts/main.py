"""
Logo Concept Pipeline — CLI

Usage:
  python -m logo_concepts.main --brand brand.json
  python -m logo_concepts.main --brand brand.json --styles wordmark,monogram
  python -m logo_concepts.main --brand brand.json --limit 3 --timeout 600
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table

from .config import ConfigError, PipelineSettings
from .models import BrandContext, ConceptSet, Outcome
from .orchestrator import ConceptOrchestrator
from .styles import LogoStyle, StyleSpec, recommend_styles, select_styles

logging.basicConfig(
    format="%(asctime)s — %(levelname)s — %(name)s — %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

console = Console()

OUTCOME_STYLES = {
    Outcome.ACCEPTED: "green",
    Outcome.BEST_EFFORT: "yellow",
    Outcome.FAILED_TO_GENERATE: "red",
    Outcome.CANCELLED: "dim",
    Outcome.PENDING: "dim",
}


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Logo Concept Pipeline — generate, score and refine logo concepts"
    )
    parser.add_argument(
        "--brand",
        required=True,
        help="Path to a brand JSON file (brand_name, tone, sector, palette, ...)",
    )
    parser.add_argument(
        "--styles",
        default=None,
        help="Comma-separated styles to run, skipping recommendation "
             f"({', '.join(s.value for s in LogoStyle)})",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of recommended styles to run",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Output directory (default: $LOGO_OUTPUT_DIR/<timestamp>)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall deadline in seconds for the whole concept set (0 = none)",
    )
    return parser.parse_args(argv)


# ── Input helpers ─────────────────────────────────────────────────────────────

def load_brand(path: Path) -> BrandContext:
    """Read a brand JSON file. Raises ValueError on unusable input."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ValueError(f"Brand file not found: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Brand file is not valid JSON: {e}")
    if not isinstance(data, dict):
        raise ValueError("Brand file must contain a JSON object")
    return BrandContext.from_dict(data)


def parse_style_list(raw: Optional[str]) -> Optional[List[LogoStyle]]:
    if not raw:
        return None
    styles = []
    for item in raw.split(","):
        name = item.strip().lower().replace("-", "_")
        if not name:
            continue
        try:
            styles.append(LogoStyle(name))
        except ValueError:
            valid = ", ".join(s.value for s in LogoStyle)
            raise ValueError(f"Unknown style {item.strip()!r} (choose from: {valid})")
    return styles or None


# ── Output helpers ────────────────────────────────────────────────────────────

def display_recommendations(brand: BrandContext, specs: List[StyleSpec]) -> None:
    chosen = {s.style for s in specs}
    table = Table(title=f"Style recommendations — {brand.brand_name}", show_lines=False)
    table.add_column("Style")
    table.add_column("Score", justify="right")
    table.add_column("Priority")
    table.add_column("Reason", overflow="fold")
    for rec in recommend_styles(brand):
        marker = "[bold]→[/bold] " if rec.style in chosen else "  "
        table.add_row(f"{marker}{rec.style.value}", str(rec.score), rec.priority, rec.reason)
    console.print(table)


def display_results(concept_set: ConceptSet) -> None:
    table = Table(title=f"Logo concepts — {concept_set.brand_name}")
    table.add_column("Style")
    table.add_column("Status")
    table.add_column("Score", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Flags", overflow="fold")
    table.add_column("Image", overflow="fold")
    for c in concept_set:
        colour = OUTCOME_STYLES[c.outcome]
        table.add_row(
            c.spec.style.value,
            f"[{colour}]{c.outcome.value}[/{colour}]",
            str(c.score) if c.last_evaluation else "—",
            f"{c.attempt_count}/{c.spec.budget}",
            ", ".join(f.value for f in c.flags) or "—",
            c.image.uri if c.image else "—",
        )
    console.print(table)


def save_concepts_json(concept_set: ConceptSet, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / "concepts.json"
    payload = concept_set.to_dict()
    payload["generated_at"] = datetime.now().isoformat(timespec="seconds")
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


# ── Main ──────────────────────────────────────────────────────────────────────

def run(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = PipelineSettings.from_env()
        settings.require_api_key()
        brand = load_brand(Path(args.brand))
        override = parse_style_list(args.styles)
    except (ConfigError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1

    if not brand.brand_name and override is None:
        console.print("[yellow]⚠ Brand has no name, falling back to default styles[/yellow]")

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output) if args.output else settings.output_dir / timestamp
    settings = replace(settings, output_dir=output_dir)
    if args.timeout is not None:
        settings = replace(settings, overall_timeout=args.timeout or None)

    console.print(Rule("[bold magenta]Logo Concept Pipeline[/bold magenta]"))
    console.print(
        f"  Brand: [bold]{brand.brand_name or '(unnamed)'}[/bold]  |  "
        f"Output: [bold]{output_dir}[/bold]"
    )

    specs = select_styles(brand, limit=args.limit, override=override)
    if override is None:
        display_recommendations(brand, specs)

    try:
        orchestrator = ConceptOrchestrator.from_settings(settings)
    except ConfigError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1

    t0 = time.time()
    concept_set = asyncio.run(orchestrator.run(brand, specs))
    display_results(concept_set)

    json_path = save_concepts_json(concept_set, output_dir)
    logger.info("Wrote %d concept(s) to %s", len(concept_set), json_path)
    console.print(
        Panel(
            f"{len(concept_set.accepted())}/{len(concept_set)} concept(s) accepted in "
            f"[bold]{time.time() - t0:.0f}s[/bold]\n"
            f"Results saved to: [bold]{json_path}[/bold]",
            title="[bold green]Concepts Complete[/bold green]",
            border_style="green",
        )
    )
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
