"""Command-line interface for browsing and editing stored notes."""

from __future__ import annotations

import asyncio
import difflib
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Awaitable, Optional, TypeVar

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from notestore.config import (
    ConfigError,
    ConfigManager,
    NotestoreConfig,
    parse_value,
    resolve_with_precedence,
)
from notestore.config.models import LoggingSettings
from notestore.config.resolver import assign_nested
from notestore.storage import (
    DirectoryContents,
    Note,
    PartialRenameError,
    StaticFolderPicker,
    StorageError,
    StorageService,
)

console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(settings: LoggingSettings) -> None:
    """Attach console and optional rotating file handlers to the package logger.

    Args:
        settings: Logging section of the loaded configuration.
    """
    logger = logging.getLogger("notestore")
    logger.setLevel(settings.level.upper())
    logger.handlers.clear()
    logger.addHandler(RichHandler(console=err_console, show_path=False))
    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_path,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)


def _parse_overrides(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for item in values:
        key, separator, raw = item.partition("=")
        if not separator or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", ctx=ctx, param=param)
        overrides[key.strip()] = parse_value(raw)
    return overrides


def _cli_overrides() -> dict[str, Any]:
    ctx = click.get_current_context(silent=True)
    if ctx is None or not isinstance(ctx.find_root().obj, dict):
        return {}
    return ctx.find_root().obj.get("overrides", {})


def _load_config(*, include_env: bool = True) -> NotestoreConfig:
    try:
        return ConfigManager().load(cli_overrides=_cli_overrides(), include_env=include_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _build_service(*, folder_uri: Optional[str] = None) -> StorageService:
    """Load configuration, configure logging, and construct the storage service.

    Args:
        folder_uri: Tree URI handed to the folder picker, if any.

    Returns:
        StorageService: Service wired to the configured locations.
    """
    config = _load_config()
    _configure_logging(config.logging)
    ctx = click.get_current_context(silent=True)
    if ctx is not None and config.cli.quiet_default:
        ctx.find_root().ensure_object(dict)["quiet"] = True
    picker = StaticFolderPicker(folder_uri) if folder_uri else None
    return StorageService.from_config(config, folder_picker=picker)


def _run(call: Awaitable[T]) -> T:
    """Drive a storage coroutine to completion, surfacing storage errors to click."""

    async def _wrapped() -> T:
        return await call

    try:
        return asyncio.run(_wrapped())
    except StorageError as exc:
        raise click.ClickException(str(exc)) from exc


def _emit(message: Any, *, quiet: bool) -> None:
    if not quiet:
        console.print(message)


def _format_timestamp(value: Any, show: bool) -> str:
    if not show:
        return ""
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def _render_contents(contents: DirectoryContents, *, show_timestamps: bool) -> Table:
    table = Table(title=contents.current_path, show_lines=False)
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Updated", no_wrap=True)
    table.add_column("Preview", overflow="ellipsis")
    for folder in contents.folders:
        table.add_row(
            "folder",
            f"[bold]{folder.name}/[/bold]",
            _format_timestamp(folder.updated_at, show_timestamps),
            "",
        )
    for note in contents.notes:
        first_line = note.preview.splitlines()[0] if note.preview else ""
        table.add_row(
            "note",
            note.filename,
            _format_timestamp(note.updated_at, show_timestamps),
            first_line,
        )
    return table


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="notestore")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.option(
    "--set",
    "overrides",
    multiple=True,
    metavar="KEY=VALUE",
    callback=_parse_overrides,
    help="Override a setting for this run, e.g. --set storage.platform=web.",
)
@click.pass_context
def cli(ctx: click.Context, quiet: bool, overrides: dict[str, Any]) -> None:
    """notestore keeps markdown notes in app storage, an external folder, or a key/value store."""
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet
    ctx.obj["overrides"] = overrides


@cli.command("ls")
@click.argument("path", required=False)
@click.option("--json", "json_output", is_flag=True, help="Emit the listing as JSON.")
@click.pass_context
def list_notes(ctx: click.Context, path: Optional[str], json_output: bool) -> None:
    """List folders and notes in PATH (defaults to the storage root)."""
    service = _build_service()

    async def _list() -> tuple[DirectoryContents, bool]:
        await service.initialize()
        contents = await service.list_directory(path)
        return contents, service.get_user_preferences().show_timestamps

    contents, show_timestamps = _run(_list())
    if json_output:
        console.print_json(data=contents.model_dump(mode="json"))
        return
    if not contents.folders and not contents.notes:
        _emit("[yellow]No notes found.[/yellow]", quiet=ctx.obj["quiet"])
        return
    _emit(_render_contents(contents, show_timestamps=show_timestamps), quiet=ctx.obj["quiet"])


@cli.command("show")
@click.argument("name")
@click.option("--folder", type=str, help="Folder path relative to the storage root.")
def show_note(name: str, folder: Optional[str]) -> None:
    """Print the markdown content of note NAME."""
    service = _build_service()

    async def _read() -> Note:
        await service.initialize()
        return await service.read_note(name, folder)

    note = _run(_read())
    click.echo(note.content, nl=not note.content.endswith("\n"))


@cli.command("write")
@click.argument("name")
@click.option("--folder", type=str, help="Folder path relative to the storage root.")
@click.option("--rename-from", type=str, help="Previous filename when renaming a note.")
@click.option(
    "--file",
    "source",
    type=click.File("r", encoding="utf-8"),
    default="-",
    show_default="stdin",
    help="Read note content from this file.",
)
@click.pass_context
def write_note(
    ctx: click.Context,
    name: str,
    folder: Optional[str],
    rename_from: Optional[str],
    source: Any,
) -> None:
    """Save note NAME with content read from --file or stdin."""
    service = _build_service()
    content = source.read()

    async def _write() -> Note:
        await service.initialize()
        return await service.write_note(Note(filename=name, content=content), rename_from, folder)

    try:
        saved = _run(_write())
    except click.ClickException as exc:
        if isinstance(exc.__cause__, PartialRenameError):
            err_console.print(f"[yellow]{exc.__cause__}[/yellow]")
            return
        raise
    _emit(f"[green]Saved {saved.filename}.[/green]", quiet=ctx.obj["quiet"])


@cli.command("rm")
@click.argument("name")
@click.option("--folder", type=str, help="Folder path relative to the storage root.")
@click.pass_context
def remove_note(ctx: click.Context, name: str, folder: Optional[str]) -> None:
    """Delete note NAME."""
    service = _build_service()

    async def _delete() -> None:
        await service.initialize()
        await service.delete_note(name, folder)

    _run(_delete())
    _emit(f"[green]Deleted {name}.[/green]", quiet=ctx.obj["quiet"])


@cli.command("location")
@click.option("--json", "json_output", is_flag=True, help="Emit location details as JSON.")
def location(json_output: bool) -> None:
    """Show where notes are currently stored."""
    service = _build_service()

    async def _info() -> Any:
        await service.initialize()
        return await service.get_storage_location_info()

    info = _run(_info())
    if json_output:
        console.print_json(data=info.model_dump(mode="json"))
        return
    console.print(f"{info.location} [dim]({info.kind})[/dim]")


@cli.command("use-folder")
@click.argument("uri")
@click.pass_context
def use_folder(ctx: click.Context, uri: str) -> None:
    """Store notes in the granted document tree URI."""
    service = _build_service(folder_uri=uri)

    async def _select() -> Optional[str]:
        await service.initialize()
        return await service.select_custom_directory()

    selected = _run(_select())
    if selected is None:
        err_console.print("[yellow]No folder was selected.[/yellow]")
        raise SystemExit(1)
    _emit(
        "[green]Storage location updated. Notes are now read from the selected folder.[/green]",
        quiet=ctx.obj["quiet"],
    )


@cli.command("use-default")
@click.pass_context
def use_default(ctx: click.Context) -> None:
    """Store notes in the app's private folder again."""
    service = _build_service()

    async def _reset() -> None:
        await service.initialize()
        await service.set_custom_directory("")

    _run(_reset())
    _emit("[green]Notes will be saved to the app's private folder.[/green]", quiet=ctx.obj["quiet"])


@cli.group()
def prefs() -> None:
    """Inspect and change display preferences."""


@prefs.command("show")
def prefs_show() -> None:
    """Display the current user preferences."""
    service = _build_service()

    async def _load() -> Any:
        await service.initialize()
        return service.get_user_preferences()

    preferences = _run(_load())
    console.print_json(data=preferences.model_dump(by_alias=True))


@prefs.command("set-timestamps")
@click.argument("show", type=bool)
def prefs_set_timestamps(show: bool) -> None:
    """Toggle timestamp display in listings."""
    service = _build_service()

    async def _save() -> Any:
        await service.initialize()
        return await service.set_show_timestamps(show)

    preferences = _run(_save())
    console.print(f"[green]showTimestamps = {preferences.show_timestamps}[/green]")


@prefs.command("set-welcome")
@click.argument("completed", type=bool)
def prefs_set_welcome(completed: bool) -> None:
    """Mark the onboarding flow as completed or pending."""
    service = _build_service()

    async def _save() -> Any:
        await service.initialize()
        return await service.set_welcome_completed(completed)

    preferences = _run(_save())
    console.print(f"[green]welcomeCompleted = {preferences.welcome_completed}[/green]")


@cli.group()
def config() -> None:
    """Manage notestore configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    settings = _load_config(include_env=not no_env)
    yaml_text = yaml.safe_dump(settings.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'storage.platform'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=NotestoreConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    diff = list(
        difflib.unified_diff(
            before,
            manager.read_text().splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    if diff:
        console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
