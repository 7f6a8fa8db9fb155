"""
Debug probe, target database and flasher boundaries.

The flashing core only talks to these interfaces. The pyOCD adapters in
``pyocd_backend`` implement them for real hardware; tests use fakes.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Protocol, Union


class ProbeError(Exception):
    """Base exception for probe/flash boundary errors."""
    pass


class ProbeSelectionError(ProbeError, IndexError):
    """Selected probe index is not in the enumerated probe list."""
    pass


class ProbeOpenError(ProbeError):
    """Debug probe could not be opened (missing, busy, or driver failure)."""
    pass


class AttachError(ProbeError):
    """Could not attach to the target chip through an open probe."""
    pass


class UnknownFamilyError(AttachError):
    """Chip family is not present in the target database."""

    def __init__(self, family: str):
        self.family = family
        super().__init__(f"Unknown chip family: '{family}'")


class UnknownChipTypeError(AttachError):
    """Chip type is not present in the target database (or not in its family)."""

    def __init__(self, chip_type: str, family: Optional[str] = None):
        self.chip_type = chip_type
        self.family = family
        where = f" in family '{family}'" if family else ""
        super().__init__(f"Unknown chip type: '{chip_type}'{where}")


class DownloadError(ProbeError):
    """Firmware artifact could not be written to the target."""
    pass


class FormatKind(Enum):
    """Firmware artifact format. Values are pyOCD file_format names."""
    ELF = "elf"
    HEX = "hex"
    BIN = "bin"

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "FormatKind":
        """
        Derive the format from a file extension.

        Raises:
            ValueError: If the extension is not a known firmware format
        """
        suffix = Path(path).suffix.lower()
        try:
            return FORMAT_EXTENSIONS[suffix]
        except KeyError:
            raise ValueError(
                f"Cannot derive firmware format from '{path}'. "
                f"Known extensions: {', '.join(sorted(FORMAT_EXTENSIONS))}"
            )


FORMAT_EXTENSIONS = {
    ".elf": FormatKind.ELF,
    ".axf": FormatKind.ELF,
    ".out": FormatKind.ELF,
    ".hex": FormatKind.HEX,
    ".ihex": FormatKind.HEX,
    ".bin": FormatKind.BIN,
}


@dataclass(frozen=True)
class ProbeDescriptor:
    """
    An enumerated debug probe.

    Attributes:
        identifier: Human-readable probe name
        serial_number: Probe serial / unique id, if the probe reports one
    """
    identifier: str
    serial_number: Optional[str] = None

    def label(self, index: int) -> str:
        """Label used in probe pickers, e.g. ``[0]STLink-V3-(0670FF...)``."""
        return f"[{index}]{self.identifier}-({self.serial_number or 'None'})"


@dataclass(frozen=True)
class Permissions:
    """
    Permissions granted to the flasher for a session.

    Attributes:
        allow_erase_all: Allow a full chip erase instead of sector erase
    """
    allow_erase_all: bool = False


class ProbeSession(Protocol):
    """An open probe; after attach, a live session with a target."""

    descriptor: ProbeDescriptor

    def close(self) -> None:
        ...


class ProbeRegistry(Protocol):
    def list_all(self) -> List[ProbeDescriptor]:
        ...

    def open(self, descriptor: ProbeDescriptor) -> ProbeSession:
        """Raises ProbeOpenError."""
        ...


class TargetRegistry(Protocol):
    def families(self) -> List[str]:
        ...

    def targets_for_family(self, name: str) -> List[str]:
        """Raises UnknownFamilyError."""
        ...

    def is_known_target(self, chip_type: str) -> bool:
        ...


class Flasher(Protocol):
    def attach(self, session: Any, chip_type: str, permissions: Permissions) -> ProbeSession:
        """Raises AttachError."""
        ...

    def download(self, session: Any, path: Union[str, Path], format_kind: FormatKind) -> None:
        """Raises DownloadError."""
        ...
