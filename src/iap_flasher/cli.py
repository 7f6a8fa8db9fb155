"""
IAP Flasher CLI

Command-line interface for browsing and curating the firmware catalog and
flashing catalog entries through a debug probe.
"""

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree
from rich.logging import RichHandler

from iap_flasher.catalog import Catalog, FirmwareImage
from iap_flasher.config import Settings, load_settings, settings_to_env
from iap_flasher.core.actions import (
    AmbiguousEntryError,
    EntryNotFoundError,
    delete_entry,
    find_entry,
    flash_firmware,
    open_catalog,
    refresh_probes,
    save_entry,
)
from iap_flasher.core.flashing import FlashOrchestrator, select_probe
from iap_flasher.core.messages import MessageLevel, WarningItem, result_to_warnings
from iap_flasher.core.parsing import parse_format_kind, parse_probe_index
from iap_flasher.core.results import OperationResult
from iap_flasher.core.safety import (
    CONFIRMATION_TOKEN,
    PermissionDeniedError,
    SafetyContext,
    create_cli_safety_context,
)
from iap_flasher.probe.interfaces import (
    FormatKind,
    Permissions,
    UnknownFamilyError,
)

logger = logging.getLogger("iap_flasher")

console = Console()

app = typer.Typer(help="🔧 IAP Flasher - firmware catalog and debug-probe flashing")


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    console.print(f"❌ {text}", style="red")


def print_structured_warning(warning: WarningItem, verbose: bool = False) -> None:
    """Print a structured warning with optional remediation."""
    if warning.level == MessageLevel.ERROR:
        style = "red"
        icon = "❌"
    elif warning.level == MessageLevel.WARN:
        style = "yellow"
        icon = "⚠️"
    else:
        style = "blue"
        icon = "ℹ️"

    console.print(f"{icon} [{warning.code.value}] {warning.title}", style=style, markup=False)
    if verbose and warning.detail:
        console.print(f"   {warning.detail}", style="dim", markup=False)
    if verbose and warning.remediation:
        console.print(f"   → {warning.remediation}", style="cyan", markup=False)


def print_warnings_from_result(result: OperationResult, verbose: bool = True) -> None:
    """Print all warnings from an OperationResult using structured format."""
    for warning in result_to_warnings(result):
        print_structured_warning(warning, verbose=verbose)


def parse_format_option(value: Optional[str]) -> Optional[FormatKind]:
    """
    Parse --format.

    CLI wrapper around core.parsing.parse_format_kind that converts
    ValueError to typer.BadParameter for proper CLI error handling.
    """
    try:
        return parse_format_kind(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level_value,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, console=Console(stderr=True))],
    )
    logger.setLevel(settings.log_level_value)


def _settings(ctx: typer.Context) -> Settings:
    if isinstance(ctx.obj, Settings):
        return ctx.obj
    return load_settings()


def _load_catalog(settings: Settings) -> Catalog:
    catalog, result = open_catalog(settings.catalog_path)
    if result.warnings:
        print_warnings_from_result(result)
    return catalog


def _build_backends(settings: Settings):
    """Create the pyOCD probe registry, flasher and target registry."""
    from iap_flasher.probe.pyocd_backend import (
        PyocdFlasher,
        PyocdProbeRegistry,
        PyocdTargetRegistry,
    )

    return PyocdProbeRegistry(), PyocdFlasher(), PyocdTargetRegistry()


def _resolve_entry(
    catalog: Catalog,
    series: str,
    product: str,
    name: str,
    version: Optional[str],
    chip: Optional[str],
) -> FirmwareImage:
    try:
        return find_entry(catalog, series, product, name, version=version, chip_type=chip)
    except AmbiguousEntryError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    except EntryNotFoundError as e:
        print_error(str(e))
        raise typer.Exit(code=1)


def _run_gated(safety_ctx: SafetyContext, fn, *args, **kwargs) -> OperationResult:
    try:
        return fn(*args, safety_ctx=safety_ctx, **kwargs)
    except PermissionDeniedError as e:
        print_error(e.reason)
        raise typer.Exit(code=1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    catalog: Optional[Path] = typer.Option(
        None, "--catalog", "-c", help="Catalog file (default: $IAP_CATALOG_PATH or app_data.json)"
    ),
    admin: bool = typer.Option(False, "--admin", help="Enable admin mode (catalog editing)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Firmware catalog and flashing tool."""
    settings = load_settings()
    if catalog is not None:
        settings.catalog_path = catalog
    if admin:
        settings.admin_mode = True
    if verbose:
        settings.log_level = "DEBUG"
    _setup_logging(settings)
    ctx.obj = settings


@app.command("catalog")
def show_catalog(ctx: typer.Context) -> None:
    """Show the firmware catalog as a tree."""
    settings = _settings(ctx)
    catalog = _load_catalog(settings)

    if catalog.is_empty:
        print_warning(f"Catalog is empty ({settings.catalog_path})")
        return

    tree = Tree(f"[bold]{settings.catalog_path}[/bold]")
    for series in catalog.series:
        series_node = tree.add(f"[cyan]{series.name}[/cyan]")
        for product in series.products:
            product_node = series_node.add(f"[magenta]{product.name}[/magenta]")
            for image in product.firmware:
                product_node.add(image.label(), style="green")
    console.print(tree)
    console.print(f"\n{len(catalog.series)} series, {catalog.image_count} firmware image(s)")


@app.command()
def show(
    ctx: typer.Context,
    series: str = typer.Argument(..., help="Series name"),
    product: str = typer.Argument(..., help="Product name"),
    name: str = typer.Argument(..., help="Firmware name"),
    version: Optional[str] = typer.Option(None, "--version", help="Firmware version"),
    chip: Optional[str] = typer.Option(None, "--chip", help="Chip type"),
) -> None:
    """Show one catalog entry."""
    settings = _settings(ctx)
    catalog = _load_catalog(settings)
    image = _resolve_entry(catalog, series, product, name, version, chip)

    table = Table(title=f"{series} / {product}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Name", image.name)
    table.add_row("Version", image.version)
    table.add_row("Path", image.fw_path)
    table.add_row("Chip family", image.chip_family)
    table.add_row("Chip type", image.chip_type)
    table.add_row("File present", "Yes" if Path(image.fw_path).is_file() else "No")
    console.print(table)


@app.command()
def add(
    ctx: typer.Context,
    series: str = typer.Argument(..., help="Series name"),
    product: str = typer.Argument(..., help="Product name"),
    name: str = typer.Argument(..., help="Firmware name"),
    version: str = typer.Option(..., "--version", help="Firmware version"),
    fw_path: str = typer.Option(..., "--path", "-p", help="Path to ELF/HEX/BIN file"),
    family: str = typer.Option(..., "--family", "-f", help="Chip family (see 'families')"),
    chip: str = typer.Option(..., "--chip", help="Chip type (see 'targets FAMILY')"),
) -> None:
    """Add or update a firmware entry (admin mode)."""
    settings = _settings(ctx)
    catalog = _load_catalog(settings)
    image = FirmwareImage(
        name=name,
        version=version,
        fw_path=fw_path,
        chip_family=family,
        chip_type=chip,
    )

    safety_ctx = create_cli_safety_context(admin_mode=settings.admin_mode)
    result = _run_gated(
        safety_ctx, save_entry, catalog, settings.catalog_path, series, product, image
    )
    print_warnings_from_result(result)
    if not result.ok:
        print_error("Save failed")
        raise typer.Exit(code=1)
    print_success(f"Saved {series} / {product} / {image.label()}")


@app.command()
def remove(
    ctx: typer.Context,
    series: str = typer.Argument(..., help="Series name"),
    product: str = typer.Argument(..., help="Product name"),
    name: str = typer.Argument(..., help="Firmware name"),
    version: Optional[str] = typer.Option(None, "--version", help="Only this version"),
    family: Optional[str] = typer.Option(None, "--family", "-f", help="Only this chip family"),
    chip: Optional[str] = typer.Option(None, "--chip", help="Only this chip type"),
) -> None:
    """
    Remove firmware entries (admin mode).

    Without --version/--family/--chip every entry with the given name is removed.
    """
    settings = _settings(ctx)
    catalog = _load_catalog(settings)

    safety_ctx = create_cli_safety_context(admin_mode=settings.admin_mode)
    result = _run_gated(
        safety_ctx,
        delete_entry,
        catalog,
        settings.catalog_path,
        series,
        product,
        name,
        version=version,
        chip_family=family,
        chip_type=chip,
    )
    print_warnings_from_result(result)
    if not result.ok:
        print_error("Delete failed")
        raise typer.Exit(code=1)
    print_success(f"Removed {result.metadata['removed']} entr{'y' if result.metadata['removed'] == 1 else 'ies'}")


@app.command()
def probes(ctx: typer.Context) -> None:
    """List connected debug probes."""
    print_header("Debug Probes")
    probe_registry, _, _ = _build_backends(_settings(ctx))
    result = refresh_probes(probe_registry)
    print_warnings_from_result(result)
    if not result.ok:
        raise typer.Exit(code=1)

    found = result.metadata["probes"]
    if not found:
        return

    table = Table(title="Debug Probes")
    table.add_column("Index", style="cyan")
    table.add_column("Probe", style="magenta")
    table.add_column("Serial", style="green")
    for index, probe in enumerate(found):
        table.add_row(str(index), probe.identifier, probe.serial_number or "None")
    console.print(table)


@app.command()
def families(ctx: typer.Context) -> None:
    """List known chip families."""
    _, _, target_registry = _build_backends(_settings(ctx))
    for family in target_registry.families():
        console.print(family, markup=False)


@app.command()
def targets(
    ctx: typer.Context,
    family: str = typer.Argument(..., help="Chip family"),
) -> None:
    """List chip types of a family."""
    _, _, target_registry = _build_backends(_settings(ctx))
    try:
        names = target_registry.targets_for_family(family)
    except UnknownFamilyError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    for name in names:
        console.print(name, markup=False)


def confirm_flash(probe_label: str, confirm_token: Optional[str]) -> SafetyContext:
    """
    Build the safety context for a flash, prompting on a TTY.

    Supports three modes:
    1. Non-interactive (script): --confirm FLASH provided, no prompts
    2. Interactive (TTY): prompts user for typed confirmation
    3. Non-interactive without token: errors with remediation
    """
    ctx = create_cli_safety_context(confirmation_token=confirm_token)
    if confirm_token is not None or ctx.interactive:
        if ctx.interactive:
            def show_details(details: dict) -> None:
                console.print()
                console.print(Panel(
                    f"[bold yellow]⚠️  FLASH CONFIRMATION REQUIRED[/bold yellow]\n\n"
                    f"Firmware:      {details.get('firmware', '')}\n"
                    f"File:          {details.get('fw_path', '')}\n"
                    f"Chip:          {details.get('chip', '')}\n"
                    f"Probe:         {probe_label}\n",
                    title="Target Flash Operation",
                    expand=False,
                ))

            ctx.show_details = show_details
            ctx.prompt_confirmation = lambda text: typer.prompt(text)
        return ctx

    console.print()
    print_error("Non-interactive environment detected but no confirmation token provided.")
    console.print(f"  Re-run with --confirm {CONFIRMATION_TOKEN}", markup=False)
    raise typer.Exit(code=1)


@app.command()
def flash(
    ctx: typer.Context,
    series: str = typer.Argument(..., help="Series name"),
    product: str = typer.Argument(..., help="Product name"),
    name: str = typer.Argument(..., help="Firmware name"),
    version: Optional[str] = typer.Option(None, "--version", help="Firmware version"),
    chip: Optional[str] = typer.Option(None, "--chip", help="Chip type"),
    probe: Optional[str] = typer.Option(
        None, "--probe", help="Probe index from 'probes' (required when several are connected)"
    ),
    format_name: Optional[str] = typer.Option(
        None, "--format", help="elf, hex or bin (default: from file extension)"
    ),
    erase_all: bool = typer.Option(False, "--erase-all", help="Allow full chip erase"),
    confirm: Optional[str] = typer.Option(
        None,
        "--confirm",
        help=f"Non-interactive confirmation token (must be '{CONFIRMATION_TOKEN}')",
    ),
) -> None:
    """
    Flash a catalog entry: open probe → attach → download.
    """
    print_header("Flash Firmware")
    settings = _settings(ctx)
    format_kind = parse_format_option(format_name)

    catalog = _load_catalog(settings)
    image = _resolve_entry(catalog, series, product, name, version, chip)

    probe_registry, flasher, target_registry = _build_backends(settings)
    scan = refresh_probes(probe_registry)
    found = scan.metadata["probes"]
    try:
        index = parse_probe_index(probe, len(found))
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    selected = select_probe(found, index)

    console.print(f"Firmware: {image.label()}", markup=False)
    console.print(f"File:     {image.fw_path}", markup=False)
    console.print(f"Probe:    {selected.label(index)}", markup=False)

    safety_ctx = confirm_flash(selected.label(index), confirm)
    orchestrator = FlashOrchestrator(probe_registry, flasher, target_registry)
    permissions = Permissions(allow_erase_all=erase_all or settings.allow_erase_all)

    try:
        result = flash_firmware(
            image,
            selected,
            orchestrator,
            safety_ctx,
            format_kind=format_kind,
            permissions=permissions,
        )
    except PermissionDeniedError as e:
        print_error(e.reason)
        raise typer.Exit(code=1)

    table = Table(title="Flash Results")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Outcome", result.outcome.value)
    table.add_row("Chip", image.chip_type)
    fmt = result.flash.format_kind
    table.add_row("Format", fmt.value if fmt is not None else "-")
    if result.artifact is not None:
        table.add_row("Size", f"{result.artifact.size:,} bytes")
        table.add_row("SHA256", result.artifact.sha256[:16] + "...")
    console.print(table)
    logger.debug(result.to_summary())

    if not result.ok:
        print_warnings_from_result(result)
        raise typer.Exit(code=1)
    print_success(result.message)


@app.command()
def ui(ctx: typer.Context) -> None:
    """Launch the Streamlit UI (requires the 'ui' extra)."""
    settings = _settings(ctx)
    # The Streamlit script runs in its own module and reads settings from the environment
    os.environ.update(settings_to_env(settings))

    from iap_flasher.streamlit_ui import launch

    launch()


def main() -> None:
    """Main entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[red bold]Fatal error:[/red bold] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
