"""
Core module for IAP Flasher.

This module provides the single source of truth for:
- Admin and flash gating (safety.py)
- Format and probe index parsing (parsing.py)
- Result objects (results.py)
- The flash state machine (flashing.py)
- Unified catalog/flash workflows (actions.py)
- Standardized warnings/messages (messages.py)

Both CLI and Streamlit UI should call into this module rather than
implementing their own logic.
"""

from .safety import (
    SafetyContext,
    PermissionDeniedError,
    CONFIRMATION_TOKEN,
    require_admin_mode,
    require_flash_permission,
)
from .parsing import parse_format_kind, parse_probe_index
from .results import ArtifactInfo, OperationResult
from .messages import (
    MessageLevel,
    WarningCode,
    WarningItem,
    warnings_from_strings,
    result_to_warnings,
)
from .flashing import (
    FlashOrchestrator,
    FlashOutcome,
    FlashResult,
    FlashState,
    FlashSequenceError,
    select_probe,
    resolve_format,
)
from .actions import (
    EntryNotFoundError,
    AmbiguousEntryError,
    open_catalog,
    find_entry,
    save_entry,
    delete_entry,
    refresh_probes,
    flash_firmware,
)

__all__ = [
    # Safety
    "SafetyContext",
    "PermissionDeniedError",
    "CONFIRMATION_TOKEN",
    "require_admin_mode",
    "require_flash_permission",
    # Parsing
    "parse_format_kind",
    "parse_probe_index",
    # Results
    "ArtifactInfo",
    "OperationResult",
    # Messages
    "MessageLevel",
    "WarningCode",
    "WarningItem",
    "warnings_from_strings",
    "result_to_warnings",
    # Flashing
    "FlashOrchestrator",
    "FlashOutcome",
    "FlashResult",
    "FlashState",
    "FlashSequenceError",
    "select_probe",
    "resolve_format",
    # Actions
    "EntryNotFoundError",
    "AmbiguousEntryError",
    "open_catalog",
    "find_entry",
    "save_entry",
    "delete_entry",
    "refresh_probes",
    "flash_firmware",
]
