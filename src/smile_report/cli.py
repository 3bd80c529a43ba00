"""CLI for smile-report: generate / derive / score commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from smile_report.core.config import AppSettings
from smile_report.core.startup_checks import validate_settings
from smile_report.engine.drivers import derive
from smile_report.engine.scenarios import select_scenarios
from smile_report.engine.tone import select_tone
from smile_report.exceptions import SmileReportError
from smile_report.factory import build_pipeline, load_retriever, load_rules, load_store
from smile_report.hooks.logging_config import setup_logging
from smile_report.models import IntakeAnswers, ProgressEvent

app = typer.Typer(name="smile-report", help="Dental questionnaire to narrative report pipeline")
console = Console()


def _load_intake(path: Path) -> IntakeAnswers:
    try:
        return IntakeAnswers.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, ValueError) as exc:
        raise typer.BadParameter(f"Cannot read intake {path}: {exc}") from exc


def _settings(verbose: bool) -> AppSettings:
    settings = AppSettings()
    if verbose:
        settings.observability.log_level = "DEBUG"
    setup_logging(settings.observability)
    return settings


@app.command()
def generate(
    intake_file: Path = typer.Argument(..., help="Intake JSON file"),
    content: Path = typer.Option(..., "--content", help="Content store YAML/JSON"),
    sources: Optional[Path] = typer.Option(None, "--sources", help="Source snippets for gap generation"),
    language: str = typer.Option("en", "--language", help="Report language"),
    rules_file: Optional[Path] = typer.Option(None, "--rules", help="Alternate rules YAML"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the full result JSON here"),
    save_content: bool = typer.Option(False, "--save-content", help="Write generated variants back to --content"),
    evaluate: bool = typer.Option(True, "--evaluate/--no-evaluate", help="Run the LLM quality evaluator"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Run the full pipeline and print the composed report sections."""
    settings = _settings(verbose)
    settings.evaluator.enabled = evaluate
    try:
        validate_settings(settings)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    intake = _load_intake(intake_file)

    def _progress(event: ProgressEvent) -> None:
        if event.status.value in ("completed", "error"):
            console.print(f"[dim]{event.phase}. {event.phase_name}: {event.status.value} {escape(event.message)}[/dim]")

    try:
        rules = load_rules(rules_file or settings.content.rules_file)
        store = load_store(settings, rules, content)
        retriever = load_retriever(settings, sources)
        pipeline = build_pipeline(settings, rules=rules, store=store, retriever=retriever)
        result = asyncio.run(pipeline.run(intake, language=language, on_progress=_progress))
    except SmileReportError as exc:
        console.print(f"[red]{type(exc).__name__}: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    table = Table(title=f"Report {result.report.session_id} ({result.report.tone.value}, {result.report.scenario_id})")
    table.add_column("#", style="cyan")
    table.add_column("Section", style="green")
    table.add_column("Words")
    table.add_column("Sources", max_width=40)
    for section in result.report.sections:
        table.add_row(str(section.number), section.name, str(section.word_count), ", ".join(section.sources))
    console.print(table)

    if result.report.suppressed_sections:
        console.print(f"Suppressed sections: {list(result.report.suppressed_sections)}")
    colour = {"PASS": "green", "FLAG": "yellow", "BLOCK": "red"}.get(result.decision.outcome.value, "white")
    console.print(f"[bold {colour}]QA: {result.decision.outcome.value}[/bold {colour}] (deliver={result.decision.can_deliver})")
    for reason in result.decision.reasons:
        console.print(f"  - {reason}")

    if output:
        output.write_text(result.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[green]Result saved to {output}[/green]")
    if save_content and any(o.persisted for o in result.gap_outcomes):
        store.save(content)
        console.print(f"[green]Generated content saved to {content}[/green]")


@app.command("derive")
def derive_cmd(
    intake_file: Path = typer.Argument(..., help="Intake JSON file"),
    rules_file: Optional[Path] = typer.Option(None, "--rules", help="Alternate rules YAML"),
) -> None:
    """Print derived drivers, tags and the selected tone."""
    intake = _load_intake(intake_file)
    rules = load_rules(rules_file)
    state = derive(intake, rules)
    decision = select_tone(state, rules)

    table = Table(title=f"Drivers for {intake.session_id}")
    table.add_column("Driver", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Question")
    for name, value in state.flat().items():
        table.add_row(name, str(value), state.sources.get(name, ""))
    console.print(table)
    console.print(f"[bold]Tags:[/bold] {', '.join(state.tags) or '(none)'}")
    console.print(f"[bold]Tone:[/bold] {decision.tone.value} {decision.profile.name} (rule {decision.rule_id})")


@app.command()
def score(
    intake_file: Path = typer.Argument(..., help="Intake JSON file"),
    rules_file: Optional[Path] = typer.Option(None, "--rules", help="Alternate rules YAML"),
    show_all: bool = typer.Option(False, "--all", help="Include candidates below the cutoff"),
) -> None:
    """Print the scenario ranking."""
    intake = _load_intake(intake_file)
    rules = load_rules(rules_file)
    selection = select_scenarios(derive(intake, rules), rules)

    table = Table(title=f"Scenarios ({selection.confidence.value})")
    table.add_column("Scenario", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Score")
    table.add_column("Matched")
    rows = selection.all_scores if show_all else selection.candidates
    for s in rows:
        table.add_row(s.scenario_id, s.name, f"{s.score:.2f}", ", ".join(s.matched_drivers))
    console.print(table)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default SMILE_API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default SMILE_API_PORT)"),
) -> None:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    settings = AppSettings()
    uvicorn.run(
        "smile_report.api.app:app",
        host=host or settings.api.host,
        port=port or settings.api.port,
        log_config=None,
    )


if __name__ == "__main__":
    app()
