"""Command line interface for FileDrap."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from filedrap.app import build_engine
from filedrap.config import ConfigError, ConfigManager, FiledrapConfig, flatten_for_env
from filedrap.errors import ScanError
from filedrap.logs import configure_logging
from filedrap.scanning import FileEntry
from filedrap.session import SessionEngine
from filedrap.state import RegisteredFolder

console = Console()


class PromptFolderPicker:
    """Folder picker that asks for a directory on the terminal."""

    def pick(self) -> Optional[str]:
        value = click.prompt(
            "Folder to add (leave empty to cancel)",
            default="",
            show_default=False,
            type=click.Path(file_okay=False, path_type=str),
        )
        value = value.strip()
        return value or None


@dataclass
class _CliState:
    """Per-invocation objects shared by subcommands."""

    verbose: bool = False
    quiet: Optional[bool] = None
    config: Optional[FiledrapConfig] = None
    engine: Optional[SessionEngine] = None


def _state(ctx: click.Context) -> _CliState:
    return ctx.ensure_object(_CliState)


def _load_config(ctx: click.Context) -> FiledrapConfig:
    state = _state(ctx)
    if state.config is None:
        try:
            state.config = ConfigManager().load()
        except ConfigError as exc:
            raise click.ClickException(str(exc)) from exc
        configure_logging(state.config.logging, verbose=state.verbose)
    return state.config


def _engine(ctx: click.Context) -> SessionEngine:
    """Return the invocation's engine, building it on first use."""
    state = _state(ctx)
    if state.engine is None:
        config = _load_config(ctx)
        state.engine = build_engine(config, picker=PromptFolderPicker())
        ctx.call_on_close(state.engine.close)
    return state.engine


def _quiet(ctx: click.Context) -> bool:
    state = _state(ctx)
    if state.quiet is not None:
        return state.quiet
    return _load_config(ctx).cli.quiet_default


def _emit_message(ctx: click.Context, message: Any, *, mode: str = "detail") -> None:
    """Print ``message`` unless quiet mode suppresses it.

    Args:
        ctx: Click context of the running command.
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `warning`, or `error`).
    """
    if _quiet(ctx) and mode != "error":
        return
    console.print(message)


def _wait(engine: SessionEngine) -> None:
    """Block until the engine's scan is applied and fail on scan errors."""
    engine.wait_for_scan()
    if isinstance(engine.last_error, ScanError):
        raise click.ClickException(str(engine.last_error))


def _resolve_folder(engine: SessionEngine, reference: Optional[str]) -> RegisteredFolder:
    """Find a registered folder by list position, id prefix, name, or path.

    Raises:
        click.ClickException: If nothing or more than one folder matches.
    """
    folders = engine.folders
    if not folders:
        raise click.ClickException("No folders registered yet. Use `filedrap add PATH`.")
    if reference is None:
        return folders[0]

    if reference.isdigit() and 1 <= int(reference) <= len(folders):
        return folders[int(reference) - 1]

    expanded = os.path.expanduser(reference)
    if os.path.isabs(expanded) or os.sep in reference:
        canonical = str(Path(expanded).resolve())
        match = engine.folder_for_path(canonical)
        if match is not None:
            return match

    lowered = reference.casefold()
    candidates = [folder for folder in folders if folder.name.casefold() == lowered]
    if not candidates:
        candidates = [folder for folder in folders if str(folder.id).startswith(lowered)]
    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        raise click.ClickException(f"'{reference}' matches several folders; use its number or id.")
    raise click.ClickException(f"No registered folder matches '{reference}'.")


def _find_entry(engine: SessionEngine, name: str) -> FileEntry:
    for entry in engine.entries:
        if entry.name == name:
            return entry
    raise click.ClickException(f"'{name}' not found in {engine.current_path}.")


def _browse(engine: SessionEngine, folder: RegisteredFolder, subpath: Optional[str]) -> None:
    """Select ``folder`` and walk down ``subpath`` one directory at a time."""
    engine.select_folder(folder.id)
    _wait(engine)
    if not subpath:
        return
    for part in PurePath(subpath).parts:
        if part in ("", "."):
            continue
        if part == "..":
            if not engine.can_go_to_parent_directory:
                raise click.ClickException(f"Cannot leave {folder.path}.")
            engine.go_to_parent_directory()
        else:
            entry = _find_entry(engine, part)
            if not entry.is_directory:
                raise click.ClickException(f"'{part}' is not a directory.")
            engine.enter_directory(entry)
        _wait(engine)


def _locate(engine: SessionEngine, folder_ref: Optional[str], relative: str) -> FileEntry:
    """Browse to the parent of ``relative`` inside a folder and return its entry."""
    folder = _resolve_folder(engine, folder_ref)
    target = PurePath(relative)
    if not target.name:
        raise click.ClickException("PATH must name an entry inside the folder.")
    parent = str(target.parent) if str(target.parent) != "." else None
    _browse(engine, folder, parent)
    return _find_entry(engine, target.name)


def _fail_with_engine_error(engine: SessionEngine, fallback: str) -> None:
    raise click.ClickException(engine.error_message or fallback)


def _entries_table(engine: SessionEngine) -> Table:
    table = Table(title=engine.current_path, title_justify="left")
    table.add_column("Name")
    table.add_column("Kind", style="dim")
    for entry in engine.entries:
        if entry.is_directory:
            table.add_row(f"[bold blue]{entry.name}/[/bold blue]", "DIR")
        else:
            table.add_row(entry.name, "")
    return table


def _entries_payload(engine: SessionEngine) -> dict[str, Any]:
    folder = engine.selected_folder
    return {
        "folder": folder.model_dump(mode="json", exclude={"access_token"}) if folder else None,
        "current_path": engine.current_path,
        "can_go_to_parent_directory": engine.can_go_to_parent_directory,
        "show_hidden_files": engine.show_hidden_files,
        "sort_ascending": engine.sort_ascending,
        "search_query": engine.search_query,
        "entries": [
            {"name": entry.name, "path": entry.path, "is_directory": entry.is_directory}
            for entry in engine.entries
        ],
        "error": engine.error_message,
    }


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="filedrap")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.option("--quiet/--no-quiet", default=None, help="Suppress non-error output.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: Optional[bool]) -> None:
    """FileDrap keeps your favourite folders one command away."""
    ctx.obj = _CliState(verbose=verbose, quiet=quiet)


@cli.command()
@click.argument("path", required=False, type=click.Path(file_okay=False, path_type=str))
@click.pass_context
def add(ctx: click.Context, path: Optional[str]) -> None:
    """Register PATH as a folder, prompting for one when omitted."""
    engine = _engine(ctx)
    known = {folder.id for folder in engine.folders}
    folder = engine.add_folder(path)
    if folder is None:
        if engine.error_message:
            _fail_with_engine_error(engine, "Folder could not be added.")
        _emit_message(ctx, "[yellow]No folder chosen.[/yellow]", mode="warning")
        return
    engine.wait_for_scan()
    if folder.id in known:
        _emit_message(ctx, f"[yellow]{folder.path} is already registered.[/yellow]", mode="warning")
        return
    _emit_message(ctx, f"[green]Added {folder.name} ({folder.path}).[/green]")


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit folders as JSON.")
@click.pass_context
def folders(ctx: click.Context, json_output: bool) -> None:
    """List registered folders."""
    engine = _engine(ctx)
    if json_output:
        payload = [
            folder.model_dump(mode="json", exclude={"access_token"}) for folder in engine.folders
        ]
        console.print_json(data={"folders": payload})
        return
    if not engine.folders:
        _emit_message(ctx, "[yellow]No folders registered yet.[/yellow]", mode="warning")
        return
    table = Table()
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Path")
    table.add_column("ID", style="dim")
    for position, folder in enumerate(engine.folders, start=1):
        table.add_row(str(position), folder.name, folder.path, str(folder.id)[:8])
    console.print(table)


@cli.command()
@click.argument("folder")
@click.pass_context
def remove(ctx: click.Context, folder: str) -> None:
    """Unregister FOLDER (number, id prefix, name, or path). Files are untouched."""
    engine = _engine(ctx)
    target = _resolve_folder(engine, folder)
    engine.remove_folder(target.id)
    _emit_message(ctx, f"[green]Removed {target.name} ({target.path}).[/green]")


@cli.command("ls")
@click.argument("folder", required=False)
@click.option("--path", "subpath", type=str, help="Subdirectory inside the folder to list.")
@click.option(
    "--search", "query", type=str, default="", help="Only show names containing this text."
)
@click.option("--desc", is_flag=True, help="Sort names Z to A.")
@click.option("--hidden/--no-hidden", default=None, help="Include hidden files.")
@click.option("--json", "json_output", is_flag=True, help="Emit entries as JSON.")
@click.pass_context
def list_entries(
    ctx: click.Context,
    folder: Optional[str],
    subpath: Optional[str],
    query: str,
    desc: bool,
    hidden: Optional[bool],
    json_output: bool,
) -> None:
    """List the contents of FOLDER (defaults to the first registered folder)."""
    engine = _engine(ctx)
    target = _resolve_folder(engine, folder)
    if hidden is not None:
        engine.set_show_hidden_files(hidden)
    if desc:
        engine.set_sort_ascending(False)
    _browse(engine, target, subpath)
    engine.set_search_query(query)

    if json_output:
        console.print_json(data=_entries_payload(engine))
        return
    if engine.error_message:
        _emit_message(ctx, f"[yellow]{engine.error_message}[/yellow]", mode="warning")
    if not engine.entries:
        _emit_message(ctx, "[yellow]No files.[/yellow]", mode="warning")
        return
    console.print(_entries_table(engine))


@cli.command()
@click.argument("folder")
@click.argument("path")
@click.argument("new_name")
@click.pass_context
def rename(ctx: click.Context, folder: str, path: str, new_name: str) -> None:
    """Rename PATH (relative to FOLDER) to NEW_NAME in place."""
    engine = _engine(ctx)
    entry = _locate(engine, folder, path)
    if not engine.rename_entry(entry, new_name):
        _fail_with_engine_error(engine, "Rename failed.")
    engine.wait_for_scan()
    _emit_message(ctx, f"[green]Renamed {entry.name} to {new_name.strip()}.[/green]")


@cli.command()
@click.argument("folder")
@click.argument("path")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def trash(ctx: click.Context, folder: str, path: str, yes: bool) -> None:
    """Move PATH (relative to FOLDER) to the trash."""
    engine = _engine(ctx)
    entry = _locate(engine, folder, path)
    if not yes:
        click.confirm(f"Move {entry.path} to the trash?", abort=True)
    if not engine.move_to_trash(entry):
        _fail_with_engine_error(engine, "Move to Trash failed.")
    engine.wait_for_scan()
    _emit_message(ctx, f"[green]Moved {entry.name} to the trash.[/green]")


@cli.command("open")
@click.argument("folder")
@click.argument("path")
@click.option("--reveal", is_flag=True, help="Show the item in the file manager instead.")
@click.pass_context
def open_entry(ctx: click.Context, folder: str, path: str, reveal: bool) -> None:
    """Open PATH (relative to FOLDER) and record it as recently used."""
    engine = _engine(ctx)
    entry = _locate(engine, folder, path)
    opened = engine.reveal_entry(entry) if reveal else engine.open_entry(entry)
    if not opened:
        _fail_with_engine_error(engine, "Could not open the item.")


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit recent files as JSON.")
@click.pass_context
def recent(ctx: click.Context, json_output: bool) -> None:
    """Show recently used files, most recent first."""
    engine = _engine(ctx)
    if json_output:
        console.print_json(data={"recent_files": list(engine.recent_files)})
        return
    if not engine.recent_files:
        _emit_message(ctx, "[yellow]No recent files.[/yellow]", mode="warning")
        return
    for position, path in enumerate(engine.recent_files, start=1):
        console.print(f"{position:>2}. {path}")


_BROWSE_HELP = (
    "Commands: ls, cd NAME, up, find [TEXT], sort, hidden, open NAME, reveal NAME, "
    "rename NAME NEW, trash NAME, use FOLDER, refresh, quit"
)


@cli.command()
@click.argument("folder", required=False)
@click.pass_context
def browse(ctx: click.Context, folder: Optional[str]) -> None:
    """Browse FOLDER interactively."""
    engine = _engine(ctx)
    _browse(engine, _resolve_folder(engine, folder), None)
    console.print(f"[dim]{_BROWSE_HELP}[/dim]")
    console.print(_entries_table(engine))

    while True:
        try:
            line = click.prompt(">", default="", show_default=False, prompt_suffix=" ")
        except click.Abort:
            break
        try:
            words = shlex.split(line)
        except ValueError as exc:
            console.print(f"[red]{exc}[/red]")
            continue
        if not words:
            continue
        command, args = words[0].lower(), words[1:]
        if command in ("quit", "exit", "q"):
            break
        try:
            if not _run_browse_command(engine, command, args):
                console.print(f"[dim]{_BROWSE_HELP}[/dim]")
                continue
        except click.ClickException as exc:
            console.print(f"[red]{exc.format_message()}[/red]")
            continue
        engine.wait_for_scan()
        if engine.error_message:
            console.print(f"[yellow]{engine.error_message}[/yellow]")
        console.print(_entries_table(engine))


def _run_browse_command(engine: SessionEngine, command: str, args: list[str]) -> bool:
    """Dispatch one interactive command; return False for unknown commands."""
    if command == "ls":
        return True
    if command == "refresh":
        engine.refresh()
    elif command == "cd" and args:
        entry = _find_entry(engine, " ".join(args))
        if not entry.is_directory:
            raise click.ClickException(f"'{entry.name}' is not a directory.")
        engine.enter_directory(entry)
    elif command == "up":
        engine.go_to_parent_directory()
    elif command == "find":
        engine.set_search_query(" ".join(args))
    elif command == "sort":
        engine.toggle_sort_order()
    elif command == "hidden":
        engine.toggle_show_hidden()
    elif command == "open" and args:
        engine.open_entry(_find_entry(engine, " ".join(args)))
    elif command == "reveal" and args:
        engine.reveal_entry(_find_entry(engine, " ".join(args)))
    elif command == "rename" and len(args) >= 2:
        engine.rename_entry(_find_entry(engine, args[0]), " ".join(args[1:]))
    elif command == "trash" and args:
        entry = _find_entry(engine, " ".join(args))
        if click.confirm(f"Move {entry.name} to the trash?", default=False):
            engine.move_to_trash(entry)
    elif command == "use" and args:
        engine.select_folder(_resolve_folder(engine, " ".join(args)).id)
    else:
        return False
    return True


@cli.group()
def config() -> None:
    """Manage FileDrap configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.option(
    "--as-env", is_flag=True, help="Print FILEDRAP__SECTION__KEY assignments instead of YAML."
)
def config_view(no_env: bool, as_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_env:
        for name, value in flatten_for_env(loaded).items():
            click.echo(f"{name}={shlex.quote(value)}")
        return

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    try:
        diff = ConfigManager().set_value(key, value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key.strip()}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        edited = click.edit(manager.read_text(), extension=".yaml")
        changed = edited is not None and manager.replace_text(edited)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if not changed:
        console.print("[yellow]No changes detected.[/yellow]")
        return
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
