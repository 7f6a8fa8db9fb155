"""
Core workflow actions for IAP Flasher.

This module exposes pure-ish functions that both CLI and Streamlit can call.
Catalog edits go through admin gating, flashing goes through confirmation
gating; everything else reports back through OperationResult.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional, Tuple, Union

from iap_flasher.catalog import (
    Catalog,
    CatalogError,
    FirmwareImage,
    delete_image,
    load_catalog_or_empty,
    save_catalog,
    upsert_image,
)
from iap_flasher.probe.interfaces import (
    FormatKind,
    Permissions,
    ProbeDescriptor,
    ProbeRegistry,
)
from .flashing import FlashOrchestrator
from .results import ArtifactInfo, OperationResult
from .safety import SafetyContext, require_admin_mode, require_flash_permission

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class EntryNotFoundError(LookupError):
    """No catalog entry matches the selection."""
    pass


class AmbiguousEntryError(LookupError):
    """More than one catalog entry matches the selection."""

    def __init__(self, message: str, matches: List[FirmwareImage]):
        self.matches = matches
        super().__init__(message)


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "iap_flasher"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def open_catalog(path: PathLike) -> Tuple[Catalog, OperationResult]:
    """
    Load the catalog at startup.

    Never fails: a missing or unparsable file yields an empty catalog and a
    warning on the result.

    Returns:
        Tuple of (catalog, result)
    """
    with _capture_logs() as logs:
        catalog, error = load_catalog_or_empty(path)
        result = OperationResult.success(operation="open_catalog", target=str(path))
        result.metadata["series"] = len(catalog.series)
        result.metadata["images"] = catalog.image_count
        if error is not None:
            result.metadata["load_error"] = type(error).__name__
            result.add_warning(f"Using empty catalog: {error}")
        result.logs = logs
        return catalog, result


def find_entry(
    catalog: Catalog,
    series_name: str,
    product_name: str,
    image_name: str,
    version: Optional[str] = None,
    chip_type: Optional[str] = None,
) -> FirmwareImage:
    """
    Resolve a single catalog entry.

    Raises:
        EntryNotFoundError: If nothing matches
        AmbiguousEntryError: If several versions/chips match and no filter narrows them
    """
    matches = [
        image
        for image in catalog.find_images(series_name, product_name, image_name)
        if (version is None or image.version == version)
        and (chip_type is None or image.chip_type == chip_type)
    ]
    where = f"{series_name}/{product_name}/{image_name}"
    if not matches:
        raise EntryNotFoundError(f"No firmware entry found: {where}")
    if len(matches) > 1:
        labels = ", ".join(image.label() for image in matches)
        raise AmbiguousEntryError(
            f"Several entries match {where}: {labels}. Specify version and chip type.",
            matches,
        )
    return matches[0]


def _persist(result: OperationResult, catalog: Catalog, path: PathLike) -> None:
    try:
        save_catalog(catalog, path)
        result.metadata["saved"] = True
    except CatalogError as e:
        logger.error(f"Catalog save failed: {e}")
        result.metadata["saved"] = False
        result.add_error(f"Catalog save failed: {e}")


def save_entry(
    catalog: Catalog,
    path: PathLike,
    series_name: str,
    product_name: str,
    image: FirmwareImage,
    safety_ctx: SafetyContext,
) -> OperationResult:
    """
    Upsert a firmware entry and persist the catalog.

    The in-memory catalog keeps the edit even when saving fails.

    Raises:
        PermissionDeniedError: If admin mode is off
    """
    require_admin_mode(safety_ctx, "save a firmware entry")

    target = f"{series_name}/{product_name}/{image.name}"
    missing = [
        label
        for label, value in (("Series", series_name), ("Product", product_name), ("Firmware name", image.name))
        if not value.strip()
    ]
    if missing:
        return OperationResult.failure(
            operation="save_entry",
            error=f"{', '.join(missing)} required",
            target=target,
        )

    with _capture_logs() as logs:
        upsert_image(catalog, series_name, product_name, image)
        result = OperationResult.success(operation="save_entry", target=target)
        result.metadata["entry"] = image.to_dict()
        if image.fw_path and not Path(image.fw_path).is_file():
            result.add_warning(f"Firmware file not found (yet): {image.fw_path}")
        _persist(result, catalog, path)
        result.logs = logs
        return result


def delete_entry(
    catalog: Catalog,
    path: PathLike,
    series_name: str,
    product_name: str,
    image_name: str,
    safety_ctx: SafetyContext,
    version: Optional[str] = None,
    chip_family: Optional[str] = None,
    chip_type: Optional[str] = None,
) -> OperationResult:
    """
    Delete firmware entries, prune empty nodes and persist the catalog.

    Raises:
        PermissionDeniedError: If admin mode is off
    """
    require_admin_mode(safety_ctx, "delete a firmware entry")

    target = f"{series_name}/{product_name}/{image_name}"
    with _capture_logs() as logs:
        removed = delete_image(
            catalog,
            series_name,
            product_name,
            image_name,
            version=version,
            chip_family=chip_family,
            chip_type=chip_type,
        )
        result = OperationResult.success(operation="delete_entry", target=target)
        result.metadata["removed"] = removed
        if not removed:
            result.add_warning(f"No firmware entry found: {target}")
        _persist(result, catalog, path)
        result.logs = logs
        return result


def refresh_probes(registry: ProbeRegistry) -> OperationResult:
    """
    Enumerate debug probes.

    Returns:
        OperationResult with metadata["probes"]: list of ProbeDescriptor
    """
    with _capture_logs() as logs:
        try:
            probes = registry.list_all()
        except Exception as e:
            logger.exception("refresh_probes failed")
            result = OperationResult.failure(operation="refresh_probes", error=str(e))
            result.metadata["probes"] = []
            result.logs = logs
            return result

        result = OperationResult.success(operation="refresh_probes")
        result.metadata["probes"] = probes
        if not probes:
            result.add_warning("No debug probes found")
        result.logs = logs
        return result


def flash_firmware(
    firmware: FirmwareImage,
    probe: ProbeDescriptor,
    orchestrator: FlashOrchestrator,
    safety_ctx: SafetyContext,
    format_kind: Optional[FormatKind] = None,
    permissions: Optional[Permissions] = None,
) -> OperationResult:
    """
    Complete flash workflow: confirm → open probe → attach → download.

    This is the main entry point for both CLI and Streamlit flash operations.

    Returns:
        OperationResult with:
            - ok: True only for FlashOutcome.SUCCESS
            - flash: FlashResult with the outcome and visited states
            - artifact: size and sha256 of the firmware file, if readable
            - metadata["probe"]: identifier of the probe used

    Raises:
        PermissionDeniedError: If flashing is not confirmed
    """
    require_flash_permission(
        safety_ctx,
        details={
            "firmware": firmware.label(),
            "fw_path": firmware.fw_path,
            "chip": f"{firmware.chip_family} / {firmware.chip_type}",
            "probe": probe.identifier,
        },
    )

    with _capture_logs() as logs:
        artifact = None
        read_error = None
        if Path(firmware.fw_path).is_file():
            try:
                artifact = ArtifactInfo.read(firmware.fw_path)
            except OSError as e:
                read_error = f"Cannot read firmware file: {e}"
                logger.warning(read_error)

        flash = orchestrator.run(firmware, probe, format_kind=format_kind, permissions=permissions)

        if flash.ok:
            result = OperationResult.success(operation="flash_firmware", target=firmware.chip_type)
        else:
            result = OperationResult.failure(
                operation="flash_firmware",
                error=flash.message,
                target=firmware.chip_type,
            )
        result.flash = flash
        result.artifact = artifact
        result.metadata["probe"] = probe.identifier
        if read_error:
            result.add_warning(read_error)
        result.logs = logs
        return result
