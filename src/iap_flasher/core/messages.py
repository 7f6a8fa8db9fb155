"""
Standardized warning and message system for IAP Flasher.

Provides structured warning items with stable codes that both CLI and
Streamlit can display consistently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List


class MessageLevel(Enum):
    """Severity level for messages."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class WarningCode(Enum):
    """Stable warning codes for known conditions."""
    # Catalog
    W_CATALOG_LOAD_FAILED = "W_CATALOG_LOAD_FAILED"
    W_CATALOG_SAVE_FAILED = "W_CATALOG_SAVE_FAILED"
    W_ENTRY_NOT_FOUND = "W_ENTRY_NOT_FOUND"
    W_ENTRY_INVALID = "W_ENTRY_INVALID"

    # Gating
    W_ADMIN_REQUIRED = "W_ADMIN_REQUIRED"
    W_CONFIRMATION_REQUIRED = "W_CONFIRMATION_REQUIRED"

    # Probe / flashing
    W_PROBE_NOT_FOUND = "W_PROBE_NOT_FOUND"
    W_PROBE_OPEN_FAILED = "W_PROBE_OPEN_FAILED"
    W_ATTACH_FAILED = "W_ATTACH_FAILED"
    W_UNKNOWN_TARGET = "W_UNKNOWN_TARGET"
    W_DOWNLOAD_FAILED = "W_DOWNLOAD_FAILED"
    W_FIRMWARE_MISSING = "W_FIRMWARE_MISSING"
    W_FIRMWARE_UNREADABLE = "W_FIRMWARE_UNREADABLE"
    W_FORMAT_UNKNOWN = "W_FORMAT_UNKNOWN"

    # Generic
    W_UNKNOWN = "W_UNKNOWN"


WARNING_REMEDIATIONS: Dict[WarningCode, str] = {
    WarningCode.W_CATALOG_LOAD_FAILED:
        "Started with an empty catalog. Fix or restore the catalog file before saving, "
        "or the next save will overwrite it.",
    WarningCode.W_CATALOG_SAVE_FAILED:
        "Check that the catalog directory is writable. The edit is kept in memory only.",
    WarningCode.W_ENTRY_NOT_FOUND:
        "Check series, product and firmware names with the 'catalog' command.",
    WarningCode.W_ENTRY_INVALID:
        "Series, product and firmware name are required.",
    WarningCode.W_ADMIN_REQUIRED:
        "Enable admin mode (--admin, IAP_ADMIN_MODE=1, or the UI switch) to edit the catalog.",
    WarningCode.W_CONFIRMATION_REQUIRED:
        "Type 'FLASH' to confirm the operation.",
    WarningCode.W_PROBE_NOT_FOUND:
        "Connect a debug probe and refresh the probe list ('probes' command).",
    WarningCode.W_PROBE_OPEN_FAILED:
        "Close other debuggers using the probe (IDE, OpenOCD, pyocd gdbserver) and check USB drivers.",
    WarningCode.W_ATTACH_FAILED:
        "Check target power and SWD wiring, and that the chip type matches the board.",
    WarningCode.W_UNKNOWN_TARGET:
        "Pick a chip family and type listed by the 'families' and 'targets' commands.",
    WarningCode.W_DOWNLOAD_FAILED:
        "The target may be partially programmed. Re-run the download before using the device.",
    WarningCode.W_FIRMWARE_MISSING:
        "Fix the firmware path in the catalog entry.",
    WarningCode.W_FIRMWARE_UNREADABLE:
        "Check that the firmware file is readable by the current user.",
    WarningCode.W_FORMAT_UNKNOWN:
        "Use an .elf, .hex or .bin file, or pass --format explicitly.",
    WarningCode.W_UNKNOWN:
        "Check logs for more details.",
}


@dataclass
class WarningItem:
    """
    Structured warning message with stable code.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable warning code for programmatic handling
        title: Short, user-facing title
        detail: Longer explanation of the issue
        remediation: Suggested action to resolve the issue
    """
    level: MessageLevel
    code: WarningCode
    title: str
    detail: str = ""
    remediation: str = ""

    def __post_init__(self):
        """Set default remediation if not provided."""
        if not self.remediation and self.code in WARNING_REMEDIATIONS:
            self.remediation = WARNING_REMEDIATIONS[self.code]


def classify_message(message: str) -> WarningCode:
    """Map a plain warning/error string to a stable code."""
    msg = message.lower()

    if "catalog" in msg and ("read" in msg or "invalid" in msg or "empty catalog" in msg):
        return WarningCode.W_CATALOG_LOAD_FAILED
    if "catalog" in msg and ("write" in msg or "serialize" in msg or "save" in msg):
        return WarningCode.W_CATALOG_SAVE_FAILED
    if "admin" in msg:
        return WarningCode.W_ADMIN_REQUIRED
    if "confirm" in msg:
        return WarningCode.W_CONFIRMATION_REQUIRED
    if "no debug probe" in msg or "probe index" in msg or "not connected" in msg:
        return WarningCode.W_PROBE_NOT_FOUND
    if "open debug probe" in msg or "open probe" in msg:
        return WarningCode.W_PROBE_OPEN_FAILED
    if "unknown chip" in msg:
        return WarningCode.W_UNKNOWN_TARGET
    if "attach" in msg:
        return WarningCode.W_ATTACH_FAILED
    if "cannot read firmware file" in msg or "firmware file not readable" in msg:
        return WarningCode.W_FIRMWARE_UNREADABLE
    if "firmware file not found" in msg:
        return WarningCode.W_FIRMWARE_MISSING
    if "derive firmware format" in msg:
        return WarningCode.W_FORMAT_UNKNOWN
    if "download" in msg:
        return WarningCode.W_DOWNLOAD_FAILED
    if "not found" in msg or "no firmware" in msg:
        return WarningCode.W_ENTRY_NOT_FOUND
    if "required" in msg:
        return WarningCode.W_ENTRY_INVALID
    return WarningCode.W_UNKNOWN


def warnings_from_strings(
    warning_strings: List[str],
    default_level: MessageLevel = MessageLevel.WARN,
) -> List[WarningItem]:
    """
    Convert plain warning strings to WarningItem list.

    Detects known patterns and assigns the matching code.
    """
    return [
        WarningItem(level=default_level, code=classify_message(msg), title=msg)
        for msg in warning_strings
    ]


def result_to_warnings(result: "OperationResult") -> List[WarningItem]:
    """Convert a result's warnings and errors to a WarningItem list."""
    items = warnings_from_strings(result.warnings, MessageLevel.WARN)
    items.extend(warnings_from_strings(result.errors, MessageLevel.ERROR))
    return items
