"""
CLI Main - Typer-based command-line interface.

Usage:
    filinggate init
    filinggate register B123456 "Acme Holding SARL" --period-end 2024-12-31
    filinggate extract <document-id> path/to/accounts.pdf
    filinggate analyze <document-id> --force
    filinggate status <document-id>
    filinggate serve
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from filinggate.config import FilingGateError, GateBlockedError, get_settings

if TYPE_CHECKING:
    from filinggate.domains.pipeline import PipelineController

app = typer.Typer(
    name="filinggate",
    help="FilingGate - Quality-gated financial statement extraction",
    add_completion=False,
)
console = Console()


@app.callback()
def configure() -> None:
    """Configure logging from settings."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def _open_controller(with_extraction: bool = False) -> AsyncIterator[PipelineController]:
    """Controller over the configured database, closed on exit."""
    from filinggate.adapters.local import LocalDocumentSource
    from filinggate.adapters.sqlite import SQLiteRepository
    from filinggate.domains.parsing import FinancialStatementParser
    from filinggate.domains.pipeline import PipelineController
    from filinggate.interfaces.api.deps import get_analysis_engine, get_orchestrator

    settings = get_settings()
    repo = SQLiteRepository(settings.db_path)
    await repo.initialize()
    try:
        yield PipelineController(
            repo,
            get_orchestrator() if with_extraction else None,
            FinancialStatementParser(),
            get_analysis_engine(),
            LocalDocumentSource(),
        )
    finally:
        await repo.close()


def _fail(error: FilingGateError) -> NoReturn:
    console.print(f"[red]Error ({error.code.value}):[/red] {error.message}")
    raise typer.Exit(1)


@app.command()
def init(
    data_dir: Path | None = typer.Option(None, "--data", "-d", help="Data directory"),
) -> None:
    """Initialize the FilingGate database."""
    asyncio.run(_init_async(data_dir))


async def _init_async(data_dir: Path | None) -> None:
    """Async initialization."""
    from filinggate.adapters.sqlite import SQLiteRepository

    settings = get_settings()
    data_path = data_dir or Path(settings.data_dir)
    db_path = data_path / settings.db_path.name if data_dir else settings.db_path

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Initializing...", total=2)

        progress.update(task, description="Creating directories...")
        data_path.mkdir(parents=True, exist_ok=True)
        progress.advance(task)

        progress.update(task, description="Initializing SQLite database...")
        repo = SQLiteRepository(db_path)
        await repo.initialize()
        await repo.close()
        progress.advance(task)

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {db_path}[/dim]")


@app.command()
def register(
    entity_id: str = typer.Argument(..., help="Registry number of the entity"),
    entity_name: str = typer.Argument(..., help="Entity name"),
    period_end: datetime | None = typer.Option(
        None, "--period-end", "-p", formats=["%Y-%m-%d"], help="Financial period end"
    ),
    handle: str | None = typer.Option(None, "--handle", help="Drive file id"),
) -> None:
    """Register a document unit."""
    asyncio.run(_register_async(entity_id, entity_name, period_end, handle))


async def _register_async(
    entity_id: str,
    entity_name: str,
    period_end: datetime | None,
    handle: str | None,
) -> None:
    async with _open_controller() as controller:
        try:
            document = await controller.register_document(
                entity_id,
                entity_name,
                period_end=period_end.date() if period_end else None,
                file_handle=handle,
            )
        except FilingGateError as e:
            _fail(e)

    console.print(f"[green]Registered:[/green] {document.id}")


@app.command()
def extract(
    document_id: str = typer.Argument(..., help="Document unit id"),
    pdf_path: Path = typer.Argument(..., help="Path to statement PDF"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the report as JSON"),
) -> None:
    """Extract, parse and gate a statement PDF."""
    if not pdf_path.exists():
        console.print(f"[red]Error:[/red] File not found: {pdf_path}")
        raise typer.Exit(1)

    asyncio.run(_extract_async(document_id, pdf_path, output))


async def _extract_async(document_id: str, pdf_path: Path, output: Path | None) -> None:
    """Async extraction implementation."""
    async with _open_controller(with_extraction=True) as controller:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Extracting...", total=None)
            try:
                report = await controller.run_extraction(document_id, content=pdf_path.read_bytes())
            except FilingGateError as e:
                _fail(e)

    table = Table(title="Extraction Summary")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Status", report.status.value)
    table.add_row("Readiness", report.readiness_level.value if report.readiness_level else "-")
    table.add_row("Provider", f"{report.provider_used}{' (fallback)' if report.used_fallback else ''}")
    if report.quality:
        table.add_row("Pages", str(report.quality.page_count))
        table.add_row("Tables", str(report.quality.table_count))
        table.add_row("Reference codes", str(report.quality.distinct_code_count))
    table.add_row("Can analyze", "yes" if report.can_proceed_to_analysis else "no")
    table.add_row("Duration", f"{report.total_duration_ms:.0f} ms")
    console.print(table)

    if report.blocking_issues:
        console.print("\n[bold red]Blocking issues:[/bold red]")
        for issue in report.blocking_issues:
            console.print(f"  [red]![/red] {issue}")
    if report.warning_issues or report.warnings:
        console.print("\n[bold yellow]Warnings:[/bold yellow]")
        for warning in [*report.warning_issues, *report.warnings]:
            console.print(f"  - {warning}")
    if report.requires_human_review:
        console.print(f"\n[yellow]Review required:[/yellow] {report.review_reason}")

    if output:
        output.write_text(report.model_dump_json(indent=2))
        console.print(f"\n[green]Saved to:[/green] {output}")


@app.command()
def analyze(
    document_id: str = typer.Argument(..., help="Document unit id"),
    force: bool = typer.Option(False, "--force", "-f", help="Store a blocked result for BLOCKED records"),
) -> None:
    """Analyze an extracted document."""
    asyncio.run(_analyze_async(document_id, force))


async def _analyze_async(document_id: str, force: bool) -> None:
    """Async analysis implementation."""
    async with _open_controller() as controller:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Analyzing...", total=None)
            try:
                report = await controller.run_analysis(document_id, force=force)
            except GateBlockedError as e:
                console.print(
                    Panel(
                        "\n".join(e.blocking_issues) or "No details",
                        title="Analysis blocked (use --force to store a blocked result)",
                        style="red",
                    )
                )
                raise typer.Exit(1)
            except FilingGateError as e:
                _fail(e)

    result = report.analysis.result
    console.print(f"\n[bold cyan]Status:[/bold cyan] {report.status.value}")
    if result:
        console.print(f"[bold]Risk score:[/bold] {result.risk_score}/100 ({result.priority_ranking})")
        if result.executive_summary:
            console.print(f"\n[bold]Summary:[/bold]\n{result.executive_summary}")

        if result.opportunities:
            table = Table(title="Opportunities")
            table.add_column("Severity")
            table.add_column("Type", style="cyan")
            table.add_column("Title")
            for opportunity in result.opportunities:
                table.add_row(_severity_color(opportunity.severity.value), opportunity.type, opportunity.title)
            console.print(table)

    if report.analysis.limitations:
        console.print("\n[bold yellow]Limitations:[/bold yellow]")
        for limitation in report.analysis.limitations:
            console.print(f"  - {limitation}")


def _severity_color(severity: str) -> str:
    """Color-code severity level."""
    colors = {
        "high": "[red]HIGH[/red]",
        "medium": "[yellow]MEDIUM[/yellow]",
        "low": "[green]LOW[/green]",
    }
    return colors.get(severity, severity.upper())


@app.command()
def status(
    document_id: str = typer.Argument(..., help="Document unit id"),
) -> None:
    """Show a document's lifecycle state and analyses."""
    asyncio.run(_status_async(document_id))


async def _status_async(document_id: str) -> None:
    async with _open_controller() as controller:
        try:
            document = await controller.get_document(document_id)
            analyses = await controller.list_analyses(document_id)
        except FilingGateError as e:
            _fail(e)

    gate = (document.record_data or {}).get("pre_analysis_gate") or {}
    console.print(
        Panel(
            f"[bold]Entity:[/bold] {document.entity_name} ({document.entity_id})\n"
            f"[bold]Period end:[/bold] {document.period_end or '-'}\n"
            f"[bold]Extraction:[/bold] {document.extraction_status.value}\n"
            f"[bold]Analysis:[/bold] {document.analysis_status.value}\n"
            f"[bold]Readiness:[/bold] {gate.get('readiness_level', '-')}\n"
            f"[bold]Fingerprint:[/bold] {(document.record_fingerprint or '-')[:12]}",
            title=document.id,
        )
    )
    if document.extraction_error:
        console.print(f"[red]Extraction error:[/red] {document.extraction_error}")
    if document.analysis_error:
        console.print(f"[red]Analysis error:[/red] {document.analysis_error}")

    if analyses:
        table = Table(title="Analyses (latest first)")
        table.add_column("Created", style="dim")
        table.add_column("Status")
        table.add_column("Readiness")
        table.add_column("Opportunities", justify="right")
        table.add_column("Risk", justify="right")
        for analysis in analyses:
            table.add_row(
                analysis.created_at.strftime("%Y-%m-%d %H:%M"),
                analysis.status,
                analysis.readiness_level.value,
                str(analysis.opportunity_count),
                str(analysis.risk_score),
            )
        console.print(table)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting FilingGate API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "filinggate.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from filinggate import __version__

    console.print(f"FilingGate v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
