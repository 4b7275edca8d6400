"""Command line interface for A-Reader."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from areader.config import AppConfig
from areader.models import format_last_read_time, progress_percentage
from areader.notify import Notifier
from areader.reader.session import DocumentOpenError, DocumentSession
from areader.store.sidecar import ConfigStore
from areader.web.app import app as web_app
from areader.web.app import configure


console = Console()
app = typer.Typer(help="A-Reader - plain-text novel reader with chapter detection and resume")


class ConsoleNotifier(Notifier):
    """Prints notices to the terminal."""

    def info(self, message: str) -> None:
        super().info(message)
        console.print(escape(message))

    def error(self, message: str) -> None:
        super().error(message)
        console.print(f"[red]{escape(message)}[/red]")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _build_store(config: AppConfig, notifier: Notifier) -> ConfigStore:
    return ConfigStore(
        notifier=notifier,
        document_suffix=config.document_suffix,
        sidecar_suffix=config.sidecar_suffix,
    )


async def _open_session(path: Path, config: AppConfig) -> DocumentSession:
    notifier = ConsoleNotifier()
    store = _build_store(config, notifier)
    try:
        return await DocumentSession.open(path, store=store, config=config, notifier=notifier)
    except DocumentOpenError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command()
def library(
    directory: Optional[Path] = typer.Argument(None, help="Directory holding .txt documents"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List documents in the library, most recently read first."""
    _setup_logging(verbose)
    config = AppConfig(library_dir=directory)
    resolved = config.resolve_library_dir(Path.cwd())
    if resolved is None:
        console.print("[yellow]No library directory given.[/yellow]")
        return

    store = _build_store(config, ConsoleNotifier())
    books = asyncio.run(store.list_directory(resolved))
    if not books:
        console.print(f"[yellow]No documents found in {resolved}.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Title")
    table.add_column("Progress")
    table.add_column("Line")
    table.add_column("Last read")
    for book in books:
        table.add_row(
            book.display_name,
            f"{progress_percentage(book)}%",
            f"{book.progress}/{book.total_lines}",
            format_last_read_time(book.last_read_time),
        )
    console.print(table)


@app.command()
def chapters(
    path: Path = typer.Argument(..., help="Document to scan", resolve_path=True),
    pattern: Optional[str] = typer.Option(None, "--pattern", "-p", help="Chapter pattern to try"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show the chapters detected in a document."""
    _setup_logging(verbose)
    config = AppConfig()
    if pattern is not None:
        config.default_chapter_pattern = pattern

    async def _run() -> DocumentSession:
        session = await _open_session(path, config)
        if pattern is not None and session.document_config is not None:
            session.document_config.chapter_pattern = None
            session.rescan_chapters()
        return session

    session = asyncio.run(_run())
    found = session.request_chapters()
    if not found:
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Line")
    table.add_column("Chapter")
    for chapter in found:
        table.add_row(str(chapter.line + 1), chapter.name)
    console.print(table)


@app.command()
def search(
    path: Path = typer.Argument(..., help="Document to search", resolve_path=True),
    term: str = typer.Argument(..., help="Literal, case-sensitive text"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Find every line containing TERM."""
    _setup_logging(verbose)
    if not term:
        raise typer.BadParameter("Search term must not be empty")
    session = asyncio.run(_open_session(path, AppConfig()))
    results = session.search(term)
    if not results:
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Line")
    table.add_column("Content")
    for result in results:
        table.add_row(str(result.line + 1), result.content[:180])
    console.print(table)


@app.command("set-pattern")
def set_pattern(
    path: Path = typer.Argument(..., help="Document to configure", resolve_path=True),
    pattern: str = typer.Argument(..., help="Regular expression matching chapter headings"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Store a chapter pattern for one document."""
    _setup_logging(verbose)

    async def _run() -> bool:
        session = await _open_session(path, AppConfig())
        return await session.reconfigure_chapter_pattern(pattern)

    if not asyncio.run(_run()):
        raise typer.Exit(code=1)


@app.command()
def progress(
    path: Path = typer.Argument(..., help="Document to inspect", resolve_path=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show the stored reading position of a document."""
    _setup_logging(verbose)
    config = AppConfig()
    store = _build_store(config, ConsoleNotifier())
    record = asyncio.run(store.load(path))
    if record is None:
        console.print(f"[yellow]No reading state stored for {path.name}.[/yellow]")
        return
    console.print(
        f"{record.display_name}: line {record.progress}/{record.total_lines} "
        f"({progress_percentage(record)}%), last read {format_last_read_time(record.last_read_time)}"
    )
    if record.chapter_pattern:
        console.print(f"Chapter pattern: {escape(record.chapter_pattern)}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    library_dir: Optional[Path] = typer.Option(None, "--library", help="Library directory"),
    step: int = typer.Option(AppConfig().scroll_step, help="Lines moved per scroll"),
) -> None:
    """Start the HTTP dispatch endpoint for a presentation layer."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    config = AppConfig(library_dir=library_dir, scroll_step=step)
    resolved = config.resolve_library_dir(Path.cwd())
    if resolved is not None and not resolved.is_dir():
        console.print("[yellow]Warning: library directory not found, listings will be empty.[/yellow]")
    configure(config)

    console.print(f"Starting A-Reader on http://{host}:{port} (library: {resolved or 'not set'})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
