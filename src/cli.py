"""CLI interface for inkwell content stores."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, time
from pathlib import Path
from typing import Annotated, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from inkwell.config import InkwellConfig, load_config, merge_cli_overrides
from inkwell.content.factory import create_store
from inkwell.content.models import (
    DateRange,
    Header,
    HeaderState,
    Item,
    SearchRequest,
    SortOrder,
)
from inkwell.content.store import ContentStore
from inkwell.errors import ConfigError, StoreError
from inkwell.logging_setup import configure_logging

app = typer.Typer(
    name="inkwell",
    help="Manage blog entries in an inkwell content store.",
)

console = Console()


@dataclass
class _Options:
    config_path: Path | None = None
    store_name: str | None = None
    verbose: bool = False
    overrides: dict[str, str | None] = field(default_factory=dict)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from inkwell import __version__

        console.print(f"inkwell {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to an .inkwell.toml file."),
    ] = None,
    store: Annotated[
        Optional[str],
        typer.Option("--store", "-s", help="Named store from the config."),
    ] = None,
    provider: Annotated[
        Optional[str],
        typer.Option("--provider", help="Override the store provider (file or memory)."),
    ] = None,
    base_path: Annotated[
        Optional[str],
        typer.Option("--base-path", help="Override the directory store paths are relative to."),
    ] = None,
    connection: Annotated[
        Optional[str],
        typer.Option("--connection", help="Override the connection string."),
    ] = None,
    file_format: Annotated[
        Optional[str],
        typer.Option("--format", help="Override the file format (json or yaml)."),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Override the log level."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log debug output to stderr."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """inkwell - blog content store administration."""
    ctx.obj = _Options(
        config_path=config,
        store_name=store,
        verbose=verbose,
        overrides={
            "provider": provider,
            "base_path": base_path,
            "connection": connection,
            "format": file_format,
            "log_level": log_level,
        },
    )


# ── Helpers ──────────────────────────────────────────────────────


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(1)


def _open_store(ctx: typer.Context) -> ContentStore:
    opts: _Options = ctx.obj or _Options()
    try:
        config: InkwellConfig = merge_cli_overrides(load_config(opts.config_path), **opts.overrides)
    except ValidationError as exc:
        raise _fail(f"Invalid configuration: {exc}") from exc
    configure_logging("DEBUG" if opts.verbose else config.logging.level)
    try:
        return create_store(config, opts.store_name)
    except (ConfigError, StoreError) as exc:
        raise _fail(str(exc)) from exc


def _parse_date(value: str | None, *, end_of_day: bool = False) -> datetime | None:
    if value is None:
        return None
    try:
        day = datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid date format: {value}")
        console.print("Use YYYY-MM-DD format (e.g., 2024-01-15)")
        raise typer.Exit(1)
    return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=UTC)


def _format_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _load(store: ContentStore, item_id: str) -> Item:
    try:
        return store.load(item_id)
    except StoreError as exc:
        raise _fail(str(exc)) from exc


def _save(store: ContentStore, item: Item) -> Item:
    try:
        return store.save(item)
    except StoreError as exc:
        raise _fail(str(exc)) from exc


def _read_content(content: str | None, content_file: Path | None) -> str | None:
    if content is not None and content_file is not None:
        raise _fail("Use either --content or --content-file, not both")
    if content_file is not None:
        return content_file.read_text(encoding="utf-8")
    return content


def _apply_fields(
    header: Header,
    name: str | None,
    description: str | None,
    author: str | None,
    tags: list[str] | None,
) -> None:
    if name is not None:
        header.name = name
    if description is not None:
        header.description = description
    if author is not None:
        header.author = author
    if tags:
        header.tags = list(tags)


# ── Commands ─────────────────────────────────────────────────────


NameOpt = Annotated[Optional[str], typer.Option("--name", "-n", help="Entry title.")]
DescriptionOpt = Annotated[Optional[str], typer.Option("--description", "-d", help="Short summary.")]
AuthorOpt = Annotated[Optional[str], typer.Option("--author", "-a", help="Author name.")]
TagOpt = Annotated[Optional[list[str]], typer.Option("--tag", "-t", help="Tag (repeatable).")]
ContentOpt = Annotated[Optional[str], typer.Option("--content", help="Body text.")]
ContentFileOpt = Annotated[
    Optional[Path],
    typer.Option(
        "--content-file",
        help="Read the body from a file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
]


@app.command()
def init(ctx: typer.Context) -> None:
    """Initialise the store, creating an empty index if none exists."""
    store = _open_store(ctx)
    entries = store.list(SearchRequest(include_deleted=True))
    console.print(f"[green]Store ready:[/green] {store.backend.describe()}")
    console.print(f"Entries: {len(entries)}")


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    tag: TagOpt = None,
    author: AuthorOpt = None,
    text: Annotated[Optional[str], typer.Option("--text", help="Match name or description.")] = None,
    state: Annotated[
        Optional[list[HeaderState]],
        typer.Option("--state", help="Only these states (repeatable)."),
    ] = None,
    include_deleted: Annotated[
        bool,
        typer.Option("--include-deleted", help="Also list deleted entries."),
    ] = False,
    since: Annotated[Optional[str], typer.Option("--since", help="Published on/after (YYYY-MM-DD).")] = None,
    until: Annotated[Optional[str], typer.Option("--until", help="Published on/before (YYYY-MM-DD).")] = None,
    sort: Annotated[SortOrder, typer.Option("--sort", help="Sort order.")] = SortOrder.INDEX,
    page: Annotated[int, typer.Option("--page", min=1, help="Page number.")] = 1,
    page_size: Annotated[Optional[int], typer.Option("--page-size", min=1, help="Entries per page.")] = None,
) -> None:
    """List entries in the index."""
    start = _parse_date(since)
    end = _parse_date(until, end_of_day=True)
    request = SearchRequest(
        states=set(state) if state else None,
        include_deleted=include_deleted,
        tags=list(tag or []),
        author=author,
        text=text,
        date_range=DateRange(start=start, end=end) if (start or end) else None,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    store = _open_store(ctx)
    headers = store.list(request)

    if not headers:
        console.print("[yellow]No entries found.[/yellow]")
        raise typer.Exit(0)

    table = Table(title=f"{len(headers)} entr{'y' if len(headers) == 1 else 'ies'}")
    table.add_column("Id", no_wrap=True)
    table.add_column("State")
    table.add_column("Name")
    table.add_column("Author")
    table.add_column("Tags")
    table.add_column("Published")
    table.add_column("Updated")
    for h in headers:
        table.add_row(
            h.id,
            h.state.value,
            h.name,
            h.author,
            ", ".join(h.tags),
            _format_date(h.published_date),
            _format_date(h.updated_date),
        )
    console.print(table)


@app.command()
def show(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Entry id.")],
) -> None:
    """Show an entry's header and body."""
    store = _open_store(ctx)
    item = _load(store, item_id)
    h = item.header
    console.print(f"[bold]{h.name or '(untitled)'}[/bold]")
    console.print(f"Id: {h.id}")
    console.print(f"State: {h.state.value}")
    if h.author:
        console.print(f"Author: {h.author}")
    if h.description:
        console.print(f"Description: {h.description}")
    if h.tags:
        console.print(f"Tags: {', '.join(h.tags)}")
    console.print(f"Published: {_format_date(h.published_date)}")
    console.print(f"Updated: {_format_date(h.updated_date)}")
    for attachment in item.attachments:
        console.print(f"Attachment: {attachment.filename}")
    console.print("")
    console.print(item.content, markup=False, highlight=False)


@app.command()
def new(
    ctx: typer.Context,
    name: NameOpt = None,
    description: DescriptionOpt = None,
    author: AuthorOpt = None,
    tag: TagOpt = None,
    content: ContentOpt = None,
    content_file: ContentFileOpt = None,
) -> None:
    """Create a new unpublished entry."""
    body = _read_content(content, content_file)
    store = _open_store(ctx)
    item = Item(content=body or "")
    _apply_fields(item.header, name, description, author, tag)
    saved = _save(store, item)
    console.print(f"[green]Created[/green] {saved.header.id}")


@app.command()
def edit(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Entry id.")],
    name: NameOpt = None,
    description: DescriptionOpt = None,
    author: AuthorOpt = None,
    tag: TagOpt = None,
    content: ContentOpt = None,
    content_file: ContentFileOpt = None,
) -> None:
    """Update fields of an existing entry. Only given options change."""
    body = _read_content(content, content_file)
    store = _open_store(ctx)
    item = _load(store, item_id)
    _apply_fields(item.header, name, description, author, tag)
    if body is not None:
        item.content = body
    saved = _save(store, item)
    console.print(f"[green]Updated[/green] {saved.header.id}")


@app.command()
def publish(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Entry id.")],
) -> None:
    """Mark an entry as published."""
    store = _open_store(ctx)
    item = _load(store, item_id)
    if item.header.state == HeaderState.DELETED:
        raise _fail(f"Entry {item_id} is deleted and cannot be published")
    item.header.state = HeaderState.PUBLISHED
    if item.header.published_date is None:
        item.header.published_date = datetime.now(tz=UTC)
    saved = _save(store, item)
    console.print(f"[green]Published[/green] {saved.header.id}")


@app.command()
def delete(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Entry id.")],
) -> None:
    """Mark an entry as deleted. It stays in the index."""
    store = _open_store(ctx)
    try:
        header = store.delete(item_id)
    except StoreError as exc:
        raise _fail(str(exc)) from exc
    console.print(f"[green]Deleted[/green] {header.id}")


@app.command()
def tags(ctx: typer.Context) -> None:
    """Show tag counts across listed entries."""
    store = _open_store(ctx)
    counts = store.tag_counts()
    if not counts:
        console.print("[yellow]No tags found.[/yellow]")
        raise typer.Exit(0)
    table = Table(title="Tags")
    table.add_column("Tag")
    table.add_column("Entries", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)
