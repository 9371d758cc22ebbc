"""CLI interface for digitaldna."""

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from digitaldna.config import DigitalDnaConfig, load_config, merge_cli_overrides
from digitaldna.shared.errors import DigitalDnaError
from digitaldna.storage.keys import Stage, build_key, resolve_key

app = typer.Typer(
    name="digitaldna",
    help="Turn personal data exports into a master profile and personas.",
)

console = Console()


class _State:
    config_path: Optional[Path] = None
    storage_root: Optional[str] = None
    model: Optional[str] = None


_state = _State()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from digitaldna import __version__

        console.print(f"digitaldna {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a TOML config file."),
    ] = None,
    storage_root: Annotated[
        Optional[str],
        typer.Option("--root", help="Local storage root (overrides config)."),
    ] = None,
    model: Annotated[
        Optional[str],
        typer.Option("--model", help="AI model name or alias (sonnet, haiku, opus)."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """digitaldna - staged enrichment of personal data exports."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _state.config_path = config
    _state.storage_root = storage_root
    _state.model = model


def _load() -> DigitalDnaConfig:
    config = load_config(_state.config_path)
    return merge_cli_overrides(config, storage_root=_state.storage_root, model=_state.model)


def _runtime(*, inline: bool = True, notify: bool = False):
    from digitaldna.pipeline import PipelineRuntime

    try:
        return PipelineRuntime(_load(), inline=inline, notify=notify)
    except DigitalDnaError as exc:
        _fail(exc)


def _fail(exc: DigitalDnaError) -> None:
    console.print(f"[red]Error:[/red] {escape(exc.message)} ({exc.code})")
    raise typer.Exit(1)


@app.command()
def normalize(
    user: Annotated[str, typer.Argument(help="User id (email).")],
    key: Annotated[str, typer.Argument(help="Raw object key or path under raw/.")],
    handoff: Annotated[
        bool,
        typer.Option("--handoff/--no-handoff", help="Categorize the written text afterwards."),
    ] = False,
) -> None:
    """Extract and chunk one raw object into normalized/."""
    from digitaldna.normalizer import TextNormalizer

    with _runtime() as runtime:
        normalizer = TextNormalizer(
            runtime.store,
            dispatcher=runtime.dispatcher if handoff else None,
            chunk_size=runtime.config.pipeline.chunk_size,
            overlap=runtime.config.pipeline.chunk_overlap,
            handoff=handoff,
        )
        try:
            result = normalizer.normalize_object(user, resolve_key(user, key, Stage.RAW))
        except DigitalDnaError as exc:
            _fail(exc)

    console.print(f"[green]Wrote {len(result.written_keys)} object(s):[/green]")
    for written in result.written_keys:
        console.print(f"  - {written}")
    if result.dispatched:
        console.print(f"Categorized {len(result.dispatched)} object(s)")


@app.command()
def categorize(
    user: Annotated[str, typer.Argument(help="User id (email).")],
    path: Annotated[str, typer.Argument(help="Normalized object key or file name.")],
) -> None:
    """Categorize one normalized object and update the master profile."""
    with _runtime() as runtime:
        key = resolve_key(user, path, Stage.NORMALIZED)
        try:
            outcome = runtime.categorizer.categorize_file(user, key)
        except DigitalDnaError as exc:
            _fail(exc)

    console.print(f"[green]Categorized {outcome.file_name}[/green] (parse: {outcome.parse_status})")
    console.print(f"  Result: {outcome.result_key}")
    console.print(f"  Categories: {', '.join(outcome.categories) or 'none'}")
    if outcome.duplicate:
        console.print("[yellow]  Already in master profile; profile merge skipped.[/yellow]")


@app.command()
def backlog(
    user: Annotated[str, typer.Argument(help="User id (email).")],
    force: Annotated[
        bool,
        typer.Option("--force", help="Re-run files already in the master profile."),
    ] = False,
) -> None:
    """Categorize every normalized object not yet processed, throttled."""
    with _runtime() as runtime:
        try:
            report = runtime.categorizer.process_backlog(
                user, bucket=runtime.token_bucket(), force=force
            )
        except DigitalDnaError as exc:
            _fail(exc)

    table = Table(title=f"Backlog for {user}")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Detail")
    for name in report.succeeded:
        table.add_row(name, "[green]processed[/green]", "")
    for name in report.skipped:
        table.add_row(name, "[dim]skipped[/dim]", "already processed")
    for failure in report.failures:
        table.add_row(failure.item, "[red]failed[/red]", f"{failure.code}: {failure.error}")
    console.print(table)
    console.print(report.summary())
    if report.has_failures:
        raise typer.Exit(1)


@app.command()
def personas(
    user: Annotated[str, typer.Argument(help="User id (email).")],
    path: Annotated[str, typer.Argument(help="Category result key or file name.")],
) -> None:
    """Update personas from one category result."""
    with _runtime() as runtime:
        try:
            outcome = runtime.personas.build(user, path)
        except DigitalDnaError as exc:
            _fail(exc)

    if not outcome.updated_personas:
        console.print("[yellow]No categories; personas unchanged.[/yellow]")
        return
    console.print(f"[green]Updated personas:[/green] {', '.join(outcome.updated_personas)}")
    if outcome.fallbacks:
        console.print(f"[yellow]Kept unchanged after AI failure:[/yellow] {', '.join(outcome.fallbacks)}")


@app.command()
def route(
    event_file: Annotated[
        Path,
        typer.Argument(help="S3-style event JSON file.", exists=True, dir_okay=False),
    ],
) -> None:
    """Feed a bucket notification event through the stage router."""
    try:
        event = json.loads(event_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error:[/red] Invalid event JSON: {escape(str(exc))}")
        raise typer.Exit(1) from exc

    with _runtime(inline=False) as runtime:
        outcomes = runtime.router.handle_event(event)
        runtime.wait()

    table = Table(title="Routing")
    table.add_column("Key")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("Reason")
    for outcome in outcomes:
        table.add_row(outcome.key, outcome.target or "-", outcome.status, outcome.reason)
    console.print(table)


@app.command()
def ingest(
    user: Annotated[str, typer.Argument(help="User id (email).")],
    files: Annotated[
        list[Path],
        typer.Argument(help="Local files to upload.", exists=True, dir_okay=False),
    ],
) -> None:
    """Upload local files into raw/ and run the whole pipeline on them."""
    with _runtime(notify=True) as runtime:
        for path in files:
            key = build_key(user, Stage.RAW, path.name)
            console.print(f"Uploading {path} -> {key}")
            runtime.store.put(key, path.read_bytes())
        runtime.wait()
    console.print(f"[green]Ingested {len(files)} file(s) for {user}[/green]")


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", help="Bind port.")] = None,
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from digitaldna.api import create_app

    config = merge_cli_overrides(_load(), host=host, port=port)
    uvicorn.run(create_app(config), host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    app()
