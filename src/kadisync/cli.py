"""Command-line interface for kadi-sync."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from kadisync.dialog import SyncDialog, SyncParams
from kadisync.engine import SyncEngine, SyncOutcome
from kadisync.errors import KadiSyncError, ValidationError
from kadisync.log import configure_logging
from kadisync.note import Note
from kadisync.settings import STATES, VISIBILITIES, Settings, load_settings, save_settings
from kadisync.sync.kadi import build_client
from kadisync.sync.licenses import get_common_licenses, search_licenses
from kadisync.vault import FileVault

app = typer.Typer(
    name="kadi-sync",
    help="Sync Obsidian notes with Kadi4Mat records.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Show or edit kadi-sync settings.", no_args_is_help=True)
app.add_typer(config_app, name="config")

console = Console()


def _run_async(func, *args, **kwargs):
    """Helper to run async functions from synchronous Typer commands."""
    return asyncio.run(func(*args, **kwargs))


@dataclass
class _AppState:
    vault: FileVault
    settings: Settings

    def engine(self) -> SyncEngine:
        return SyncEngine(self.vault, self.settings, build_client(self.settings))


def _state(ctx: typer.Context) -> _AppState:
    return ctx.obj


def _resolve_note(vault: FileVault, path: Path) -> Note:
    """Accept a path relative to the cwd, absolute, or relative to the vault."""
    candidate = path if path.is_absolute() else Path.cwd() / path
    if candidate.is_file():
        try:
            return vault.note(candidate.resolve())
        except ValueError:
            raise typer.BadParameter(f"{path} is outside the vault {vault.root}") from None
    note = vault.note(path)
    if not vault.exists(note):
        raise typer.BadParameter(f"Note '{path}' not found in {vault.root}")
    return note


async def _with_engine(engine: SyncEngine, coro_fn, *args):
    try:
        return await coro_fn(*args)
    finally:
        if engine.client is not None:
            await engine.client.aclose()


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------


class ConsoleConfirmer:
    """Terminal rendition of the sync dialog."""

    def __init__(
        self,
        engine: SyncEngine,
        *,
        interactive: bool = True,
        preview: bool = False,
        title: str | None = None,
        state: str | None = None,
        visibility: str | None = None,
        license: str | None = None,
    ) -> None:
        self.engine = engine
        self.interactive = interactive
        self.preview = preview
        self.overrides = {"title": title, "state": state, "visibility": visibility, "license": license}
        self.dialog: SyncDialog | None = None

    async def __call__(self, dialog: SyncDialog) -> SyncParams | None:
        self.dialog = dialog
        for key, value in self.overrides.items():
            if value is not None:
                setattr(dialog, key, value)
                dialog.log(f"{key.capitalize()} changed to: {value}")
        # applied once; a re-prompt keeps what the user typed
        self.overrides = {}

        heading = "Update Kadi4Mat Record" if dialog.is_update else "Create Kadi4Mat Record"
        info = f"File: {dialog.note.path}"
        if dialog.is_update:
            info += f"\nRecord ID: {dialog.record_id}"
        console.print(Panel(info, title=f"[bold]{heading}[/bold]", border_style="blue"))

        if self.preview:
            data = self.engine.preview_metadata(dialog)
            console.print_json(json.dumps(data, default=str, ensure_ascii=False))

        if self.interactive:
            self._prompt(dialog)
        else:
            self._show(dialog)

        params = dialog.params()
        try:
            params.validate()
        except ValidationError as exc:
            dialog.log(f"ERROR: {exc}")
            console.print(f"[red]{escape(str(exc))}[/red]")
            if not self.interactive:
                raise
            return await self(dialog)

        if self.interactive and not Confirm.ask(f"{dialog.mode} record?", default=True, console=console):
            return None
        return params

    def _prompt(self, dialog: SyncDialog) -> None:
        dialog.title = Prompt.ask("Record title", default=dialog.title, console=console)
        dialog.state = Prompt.ask("State", choices=list(STATES), default=dialog.state, console=console)
        dialog.visibility = Prompt.ask(
            "Visibility", choices=list(VISIBILITIES), default=dialog.visibility, console=console
        )
        common = ", ".join(lic.id for lic in get_common_licenses())
        console.print(f"[dim]Common licenses: {common} (see 'kadi-sync licenses')[/dim]")
        dialog.license = Prompt.ask("License", default=dialog.license or "", console=console) or None
        if dialog.license_label:
            console.print(f"[dim]Current license: {dialog.license_label}[/dim]")

    def _show(self, dialog: SyncDialog) -> None:
        table = Table(show_header=False, box=None)
        table.add_row("Title", dialog.title)
        table.add_row("State", dialog.state)
        table.add_row("Visibility", dialog.visibility)
        table.add_row("License", dialog.license or "-")
        console.print(table)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.callback()
def main(
    ctx: typer.Context,
    vault: Path = typer.Option(
        Path("."),
        "--vault",
        "-v",
        envvar="KADI_VAULT",
        help="Vault directory (defaults to the current directory)",
    ),
):
    """Sync Obsidian notes with Kadi4Mat records."""
    if not vault.is_dir():
        raise typer.BadParameter(f"Directory '{vault}' does not exist.", param_hint="--vault / -v")
    file_vault = FileVault(vault, console=console)
    settings = load_settings(file_vault)
    configure_logging(settings.debug_mode)
    ctx.obj = _AppState(file_vault, settings)


@app.command()
def sync(
    ctx: typer.Context,
    note: Path = typer.Argument(..., help="Note to sync"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Use defaults without prompting"),
    title: Optional[str] = typer.Option(None, "--title", help="Record title"),
    state: Optional[str] = typer.Option(None, "--state", help="active or inactive"),
    visibility: Optional[str] = typer.Option(None, "--visibility", help="private or public"),
    license: Optional[str] = typer.Option(None, "--license", help="SPDX license id"),
    preview: bool = typer.Option(False, "--preview", help="Show the metadata that will be sent"),
    save_log: bool = typer.Option(False, "--save-log", help="Save the debug log into the vault"),
):
    """Create or update the Kadi4Mat record of a note."""
    app_state = _state(ctx)
    target = _resolve_note(app_state.vault, note)
    engine = app_state.engine()
    confirmer = ConsoleConfirmer(
        engine,
        interactive=not yes,
        preview=preview,
        title=title,
        state=state,
        visibility=visibility,
        license=license,
    )

    failed = False
    outcome: SyncOutcome | None = None
    try:
        outcome = _run_async(_with_engine, engine, engine.sync_note, target, confirmer)
    except KadiSyncError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        failed = True

    dialog = confirmer.dialog
    if dialog is not None and (failed or app_state.settings.debug_mode):
        console.print(Panel(Text("\n".join(dialog.messages)), title="Debug Information", border_style="dim"))
    if dialog is not None and save_log:
        _run_async(dialog.save_log, app_state.vault)

    if failed:
        raise typer.Exit(1)
    if outcome.ok:
        console.print(f"[green]{engine.status_bar.text}[/green]")
    elif outcome.reason == "cancelled":
        console.print("[yellow]Sync cancelled.[/yellow]")
    else:
        raise typer.Exit(1)


@app.command()
def status(ctx: typer.Context, note: Path = typer.Argument(..., help="Note to inspect")):
    """Show the sync status stored in a note."""
    app_state = _state(ctx)
    target = _resolve_note(app_state.vault, note)
    engine = app_state.engine()
    engine.show_sync_status(target)
    console.print(f"[dim]{engine.update_status_bar(target)}[/dim]")


@app.command("open")
def open_record(
    ctx: typer.Context,
    note: Path = typer.Argument(..., help="Synced note"),
    print_only: bool = typer.Option(False, "--print", help="Only print the URL"),
):
    """Open the note's record in the browser."""
    app_state = _state(ctx)
    target = _resolve_note(app_state.vault, note)
    url = app_state.engine().record_url(target)
    if url is None:
        raise typer.Exit(1)
    console.print(url)
    if not print_only:
        typer.launch(url)


@app.command("test-connection")
def test_connection(ctx: typer.Context):
    """Check that the configured host and token work."""
    engine = _state(ctx).engine()
    if not _run_async(_with_engine, engine, engine.test_connection):
        raise typer.Exit(1)


@app.command()
def licenses(query: Optional[str] = typer.Argument(None, help="Filter by name or SPDX id")):
    """List the licenses a record can carry."""
    found = search_licenses(query) if query else get_common_licenses()
    table = Table(title="Licenses" if query else "Common Licenses")
    table.add_column("SPDX id", style="cyan")
    table.add_column("Name")
    for lic in found:
        table.add_row(lic.id, lic.name)
    console.print(table)


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the current settings."""
    app_state = _state(ctx)
    table = Table(title=f"Settings ({app_state.vault.data_path})")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in app_state.settings.redacted().items():
        table.add_row(key, json.dumps(value, ensure_ascii=False) if not isinstance(value, str) else value)
    console.print(table)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Setting name, e.g. host or tag_filter"),
    value: str = typer.Argument(..., help="New value; lists are comma-separated"),
):
    """Change one setting and save it."""
    app_state = _state(ctx)
    name = key.replace("-", "_")
    parsed: object = value
    if isinstance(getattr(app_state.settings, name, None), dict):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            console.print(f"[red]{name} expects a JSON object[/red]")
            raise typer.Exit(1)
    try:
        app_state.settings.update(**{name: parsed})
    except ValidationError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)
    save_settings(app_state.vault, app_state.settings)
    console.print(f"[green]✓[/green] {name} saved")


if __name__ == "__main__":
    app()
