"""
Result objects for core operations.

Catalog edits and flash attempts both report through OperationResult so the
CLI and the Streamlit UI render them the same way.
"""

import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .flashing import FlashOutcome, FlashResult


@dataclass(frozen=True)
class ArtifactInfo:
    """Size and digest of the firmware file handed to the flasher."""
    path: str
    size: int
    sha256: str

    @classmethod
    def read(cls, path: Union[str, Path]) -> "ArtifactInfo":
        """Read the file once. Raises OSError if it cannot be read."""
        data = Path(path).read_bytes()
        return cls(path=str(path), size=len(data), sha256=hashlib.sha256(data).hexdigest())


@dataclass
class OperationResult:
    """
    Outcome of one catalog or flash action.

    Attributes:
        ok: Whether the action completed
        operation: Action name ("save_entry", "flash_firmware", ...)
        target: Catalog entry path or chip type the action worked on
        warnings: Non-blocking issues
        errors: Blocking errors; any error makes ok False
        metadata: Action-specific values (entry dict, probe list, removed count)
        logs: Log lines captured while the action ran
        flash: State machine result, set by flash_firmware only
        artifact: Firmware file info, when the file could be read
    """
    ok: bool
    operation: str
    target: str = ""
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)
    flash: Optional[FlashResult] = None
    artifact: Optional[ArtifactInfo] = None

    @property
    def outcome(self) -> Optional[FlashOutcome]:
        return self.flash.outcome if self.flash is not None else None

    @property
    def message(self) -> str:
        """One-line status text for the status bar."""
        if self.flash is not None:
            return self.flash.message
        if self.errors:
            return self.errors[0]
        return f"{self.operation} done"

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_error(self, message: str) -> None:
        """Record a blocking error; the result becomes failed."""
        self.errors.append(message)
        self.ok = False

    def to_summary(self) -> str:
        status = "OK" if self.ok else "FAILED"
        lines = [f"[{status}] {self.operation} {self.target}".rstrip()]

        if self.flash is not None:
            lines.append(f"  Outcome: {self.flash.outcome.value}")
            lines.append("  States: " + " -> ".join(s.value for s in self.flash.states))
        if self.artifact is not None:
            lines.append(f"  Artifact: {self.artifact.path} ({self.artifact.size:,} bytes)")
            lines.append(f"  sha256: {self.artifact.sha256[:16]}...")

        for label, items in (("Warnings", self.warnings), ("Errors", self.errors)):
            if items:
                lines.append(f"  {label}:")
                lines.extend(f"    - {item}" for item in items)

        return "\n".join(lines)

    @classmethod
    def success(cls, operation: str, target: str = "", **kwargs) -> "OperationResult":
        return cls(ok=True, operation=operation, target=target, **kwargs)

    @classmethod
    def failure(cls, operation: str, error: str, target: str = "", **kwargs) -> "OperationResult":
        result = cls(ok=False, operation=operation, target=target, **kwargs)
        result.errors.append(error)
        return result
