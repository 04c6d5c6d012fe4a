from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from photomirror.config import AppConfig, default_config_path, load_config, write_default_config
from photomirror.errors import MirrorError
from photomirror.output_models import EntityCounts, ExportResult, HistoryEntryOutput
from photomirror.service import MirrorService, SyncOptions
from photomirror.source import ManifestSource
from photomirror.util.logging import setup_logging, use_color

app = typer.Typer(help="photomirror: mirror a media library into a local export")


@dataclass(slots=True)
class AppState:
    cfg: AppConfig
    console: Console
    config_path: Path


def _state(ctx: typer.Context) -> AppState:
    st = ctx.obj
    if not isinstance(st, AppState):
        raise RuntimeError("app state not initialized")
    return st


def _service(st: AppState, manifest: Path | None = None) -> MirrorService:
    source = ManifestSource(manifest.expanduser()) if manifest else None
    return MirrorService(st.cfg, source=source)


def _fail(st: AppState, exc: Exception) -> typer.Exit:
    st.console.print(f"[red]error:[/red] {exc}")
    return typer.Exit(1)


def _emit_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _counts_row(name: str, counts: EntityCounts) -> list[str]:
    return [
        name,
        str(counts.inserted),
        str(counts.updated),
        str(counts.unchanged),
        str(counts.skipped),
        str(counts.marked_for_deletion),
        str(counts.deleted),
    ]


def _print_result(console: Console, result: ExportResult) -> None:
    table = Table(title="entities")
    for col in ("entity", "inserted", "updated", "unchanged", "skipped", "marked", "deleted"):
        table.add_column(col)
    table.add_row(*_counts_row("asset", result.asset_export.asset))
    table.add_row(*_counts_row("file", result.asset_export.file))
    table.add_row(*_counts_row("folder", result.collection_export.folder))
    table.add_row(*_counts_row("album", result.collection_export.album))
    console.print(table)

    fe = result.file_export
    se = result.symlink_export
    console.print(
        f"[bold]files[/bold]: {fe.copied} copied, {fe.removed} removed upstream, "
        f"{fe.deleted} deleted, {fe.failed} failed"
    )
    console.print(f"[bold]symlinks[/bold]: {se.created} created, {se.failed} failed")
    console.print(f"[green]done[/green] in {result.run_time:.3f}s")


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[Path | None, typer.Option("--config", help="Config YAML path")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log warnings and errors")] = False,
) -> None:
    setup_logging(verbose=verbose, quiet=quiet)
    cfg_path = config.expanduser() if config else default_config_path()
    color_on = use_color()
    console = Console(color_system="auto" if color_on else None, force_terminal=color_on)
    if not cfg_path.exists():
        write_default_config(cfg_path)
    try:
        cfg = load_config(cfg_path)
    except MirrorError as exc:
        console.print(f"[red]error:[/red] {exc}")
        raise typer.Exit(1) from exc
    ctx.obj = AppState(cfg=cfg, console=console, config_path=cfg_path)


@app.command("init-config")
def init_config(
    ctx: typer.Context,
    path: Annotated[Path | None, typer.Option("--path", help="Write config to this path")] = None,
) -> None:
    st = _state(ctx)
    written = write_default_config(path.expanduser() if path else st.config_path)
    st.console.print(f"[green]config:[/green] {written}")


@app.command("sync")
def sync_cmd(
    ctx: typer.Context,
    manifest: Annotated[Path | None, typer.Option("--manifest", help="Library directory containing manifest.yaml")] = None,
    no_assets: Annotated[bool, typer.Option("--no-assets", help="Skip the asset pass")] = False,
    no_collections: Annotated[bool, typer.Option("--no-collections", help="Skip the folder/album pass")] = False,
    no_files: Annotated[bool, typer.Option("--no-files", help="Skip copying and removing files")] = False,
    no_symlinks: Annotated[bool, typer.Option("--no-symlinks", help="Skip rebuilding symlink trees")] = False,
    expiry_days: Annotated[int | None, typer.Option("--expiry-days", min=0, help="Days before tombstones are purged")] = None,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    defaults = SyncOptions.from_config(st.cfg)
    options = SyncOptions(
        assets=defaults.assets and not no_assets,
        collections=defaults.collections and not no_collections,
        files=defaults.files and not no_files,
        symlinks=defaults.symlinks and not no_symlinks,
        expiry_days=expiry_days,
    )
    try:
        result = _service(st, manifest).sync(options)
    except MirrorError as exc:
        raise _fail(st, exc) from exc

    if json_out:
        _emit_json(result.model_dump())
        return
    _print_result(st.console, result)


def _print_history(console: Console, entries: list[HistoryEntryOutput]) -> None:
    table = Table(title="runs")
    for col in ("created_at", "assets", "files", "albums", "folders", "size", "copied", "run_time"):
        table.add_column(col)
    for e in entries:
        table.add_row(
            e.created_at,
            str(e.asset_count),
            str(e.file_count),
            str(e.album_count),
            str(e.folder_count),
            str(e.file_size_total),
            str(e.export_result.file_export.copied),
            f"{e.run_time:.3f}",
        )
    console.print(table)


@app.command("last-run")
def last_run_cmd(
    ctx: typer.Context,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    try:
        entry = _service(st).last_run()
    except MirrorError as exc:
        raise _fail(st, exc) from exc
    if json_out:
        _emit_json(entry.model_dump() if entry is not None else None)
        return
    if entry is None:
        st.console.print("[dim]no runs recorded[/dim]")
        return
    st.console.print(f"[bold]run[/bold] {entry.id} at {entry.created_at}")
    _print_result(st.console, entry.export_result)


@app.command("history")
def history_cmd(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1)] = 10,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    try:
        entries = _service(st).history(limit=limit)
    except MirrorError as exc:
        raise _fail(st, exc) from exc
    if json_out:
        _emit_json([e.model_dump() for e in entries])
        return
    if not entries:
        st.console.print("[dim]no runs recorded[/dim]")
        return
    _print_history(st.console, entries)


@app.command("status")
def status_cmd(
    ctx: typer.Context,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    try:
        status = _service(st).status()
    except MirrorError as exc:
        raise _fail(st, exc) from exc
    payload = status.model_dump()
    if json_out:
        _emit_json(payload)
        return
    for k, v in payload.items():
        st.console.print(f"[bold]{k}[/bold]: {v}")


if __name__ == "__main__":
    app()
