"""Debug probe layer - boundary interfaces and pyOCD adapters.

The pyOCD adapters live in ``iap_flasher.probe.pyocd_backend`` and are
imported on demand so the catalog tooling works without probe drivers.
"""

from .interfaces import (
    ProbeError,
    ProbeSelectionError,
    ProbeOpenError,
    AttachError,
    UnknownFamilyError,
    UnknownChipTypeError,
    DownloadError,
    FormatKind,
    FORMAT_EXTENSIONS,
    ProbeDescriptor,
    Permissions,
    ProbeSession,
    ProbeRegistry,
    TargetRegistry,
    Flasher,
)

__all__ = [
    # Errors
    "ProbeError",
    "ProbeSelectionError",
    "ProbeOpenError",
    "AttachError",
    "UnknownFamilyError",
    "UnknownChipTypeError",
    "DownloadError",
    # Types
    "FormatKind",
    "FORMAT_EXTENSIONS",
    "ProbeDescriptor",
    "Permissions",
    # Boundaries
    "ProbeSession",
    "ProbeRegistry",
    "TargetRegistry",
    "Flasher",
]
