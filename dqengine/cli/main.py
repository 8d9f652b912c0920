# -*- coding: utf-8 -*-
"""
DQ Engine CLI
=============

``dq`` command line interface for offline field reconciliation runs
over exported JSON files.

Commands:
    automap    propose mappings between two exported element lists
    validate   check one value against the built-in business rules
    reconcile  reconcile a ReconcileRequest document
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from dqengine import __version__
from dqengine.reconciliation.config import get_config
from dqengine.reconciliation.models import (
    ComparisonStatus,
    DataElement,
    ReconcileRequest,
)
from dqengine.reconciliation.setup import ReconciliationService

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="dq",
    help="DQ Engine: cross-repository field reconciliation",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()

_STATUS_STYLES = {
    ComparisonStatus.VALID: "green",
    ComparisonStatus.MISMATCH: "red",
    ComparisonStatus.MISSING: "yellow",
    ComparisonStatus.OUT_OF_RANGE: "magenta",
}


@app.callback(invoke_without_command=True)
def _root(
    version: bool = typer.Option(False, "--version", help="Show version and exit")
):
    """
    DQ Engine - cross-repository field reconciliation
    """
    if version:
        console.print(f"DQ Engine v{__version__}")
        raise typer.Exit(0)


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red][FAIL][/red] Cannot read {path}: {exc}")
        raise typer.Exit(1)


def _load_elements(path: Path) -> List[DataElement]:
    payload = _load_json(path)
    if not isinstance(payload, list):
        console.print(f"[red][FAIL][/red] {path} must contain a JSON list of elements")
        raise typer.Exit(1)
    try:
        return [DataElement.model_validate(item) for item in payload]
    except ValidationError as exc:
        console.print(f"[red][FAIL][/red] Invalid element in {path}:\n{exc}")
        raise typer.Exit(1)


def _write_output(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    console.print(f"[green][OK][/green] Written to {path}")


@app.command()
def automap(
    source: Path = typer.Argument(..., help="JSON list of source elements"),
    target: Path = typer.Argument(..., help="JSON list of target elements"),
    min_similarity: Optional[float] = typer.Option(
        None, "--min-similarity", "-m", min=0.0,
        help="Minimum overall similarity (default from DQ_RECON_DEFAULT_MIN_SIMILARITY)",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write suggestions as JSON",
    ),
):
    """Propose mappings from SOURCE elements onto TARGET elements"""
    service = ReconciliationService(config=get_config())
    source_elements = _load_elements(source)
    target_elements = _load_elements(target)

    suggestions = service.generate_auto_mappings(
        source_elements, target_elements, min_similarity,
    )

    table = Table(title=f"Mapping Suggestions ({len(suggestions)} found)")
    table.add_column("Source", style="cyan")
    table.add_column("Target", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Confidence")
    table.add_column("Reasons", style="dim")
    for suggestion in suggestions:
        table.add_row(
            suggestion.source_element.display_name or suggestion.source_id,
            suggestion.target_element.display_name or suggestion.target_id,
            f"{suggestion.similarity.overall:.3f}",
            suggestion.confidence.value,
            "; ".join(suggestion.reasons),
        )
    console.print(table)

    unmapped = len(source_elements) - len(suggestions)
    if unmapped:
        console.print(f"[yellow][WARN][/yellow] {unmapped} source elements unmapped")

    if output is not None:
        _write_output(output, [s.model_dump(mode="json") for s in suggestions])


@app.command()
def validate(
    value: str = typer.Argument(..., help="Raw value to check"),
    label: str = typer.Argument("", help="Field label used to pick rules"),
):
    """Check VALUE against the built-in business rules"""
    service = ReconciliationService(config=get_config())
    outcome = service.validate_value(value, label)
    if outcome.valid:
        console.print(f"[green][OK][/green] {value!r} is valid")
        return
    console.print(f"[red][FAIL][/red] {outcome.error}")
    raise typer.Exit(1)


@app.command()
def reconcile(
    request: Path = typer.Argument(..., help="ReconcileRequest JSON document"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write results as JSON",
    ),
):
    """Reconcile the groups of a REQUEST document"""
    service = ReconciliationService(config=get_config())
    try:
        parsed = ReconcileRequest.model_validate(_load_json(request))
    except ValidationError as exc:
        console.print(f"[red][FAIL][/red] Invalid request in {request}:\n{exc}")
        raise typer.Exit(1)

    try:
        response = service.reconcile_groups(
            parsed.groups,
            parsed.values_by_repository,
            parsed.org_unit,
            parsed.period,
            repository_names=parsed.repository_names(),
            org_unit_name=parsed.org_unit_name,
        )
    except ValueError as exc:
        console.print(f"[red][FAIL][/red] {exc}")
        raise typer.Exit(1)

    names = response.results[0].repository_names if response.results else []
    table = Table(title=f"Reconciliation {parsed.org_unit} / {parsed.period}")
    table.add_column("Field", style="cyan")
    for name in names:
        table.add_column(name)
    table.add_column("Status")
    table.add_column("Suggested", style="green")
    for result in response.results:
        style = _STATUS_STYLES[result.status]
        table.add_row(
            result.logical_name,
            *[v if v is not None else "-" for v in result.values],
            f"[{style}]{result.status.value}[/{style}]",
            result.suggested_value or "",
        )
    console.print(table)

    summary = response.summary
    console.print(
        f"[bold]Total:[/bold] {summary.total_records}  "
        f"[green]valid {summary.valid_records}[/green]  "
        f"[red]mismatch {summary.mismatched_records}[/red]  "
        f"[yellow]missing {summary.missing_records}[/yellow]  "
        f"[magenta]out of range {summary.out_of_range_records}[/magenta]"
    )

    if output is not None:
        _write_output(output, response.model_dump(mode="json"))


def main():
    """Main entry point for the dq CLI"""
    logging.basicConfig(
        level=getattr(logging, get_config().log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
