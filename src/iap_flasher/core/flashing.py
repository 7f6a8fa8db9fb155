"""
Flash orchestration state machine.

Sequences a single flash attempt:

    IDLE -> PROBE_OPENED -> ATTACHED -> DOWNLOADED

Any failing transition ends in FAILED instead. Every attempt ends in exactly
one FlashOutcome. There is no retry and no rollback: after DOWNLOAD_FAILED
the target's contents are undefined. The whole sequence is a single blocking
call on the caller's thread.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from iap_flasher.catalog.model import FirmwareImage
from iap_flasher.probe.interfaces import (
    AttachError,
    DownloadError,
    Flasher,
    FormatKind,
    Permissions,
    ProbeDescriptor,
    ProbeOpenError,
    ProbeRegistry,
    ProbeSelectionError,
    ProbeSession,
    TargetRegistry,
    UnknownChipTypeError,
)

logger = logging.getLogger(__name__)


class FlashState(Enum):
    IDLE = "idle"
    PROBE_OPENED = "probe_opened"
    ATTACHED = "attached"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


class FlashOutcome(Enum):
    """Terminal outcome of a flash attempt."""
    SUCCESS = "success"
    PROBE_OPEN_FAILED = "probe_open_failed"
    ATTACH_FAILED = "attach_failed"
    DOWNLOAD_FAILED = "download_failed"


OUTCOME_MESSAGES = {
    FlashOutcome.SUCCESS: "Download succeeded",
    FlashOutcome.PROBE_OPEN_FAILED: "Cannot open debug probe",
    FlashOutcome.ATTACH_FAILED: "Cannot attach to target chip",
    FlashOutcome.DOWNLOAD_FAILED: "Download failed",
}


class FlashSequenceError(RuntimeError):
    """A step was called out of order."""
    pass


@dataclass
class FlashResult:
    """
    Result of FlashOrchestrator.run().

    Attributes:
        outcome: Terminal outcome
        detail: Error text of the failing step (empty on success)
        states: States visited, in order
        format_kind: Format used for the download, once resolved
    """
    outcome: FlashOutcome
    detail: str = ""
    states: List[FlashState] = field(default_factory=list)
    format_kind: Optional[FormatKind] = None

    @property
    def ok(self) -> bool:
        return self.outcome is FlashOutcome.SUCCESS

    @property
    def message(self) -> str:
        text = OUTCOME_MESSAGES[self.outcome]
        return f"{text}: {self.detail}" if self.detail else text


def select_probe(probes: Sequence[ProbeDescriptor], index: int) -> ProbeDescriptor:
    """
    Pick the caller-selected probe from the current enumeration.

    The index is not re-validated against a refreshed list; refreshing the
    list after selection makes the old index meaningless.

    Raises:
        ProbeSelectionError: If index is outside the list
    """
    if not 0 <= index < len(probes):
        if not probes:
            raise ProbeSelectionError("No debug probes available")
        raise ProbeSelectionError(
            f"Probe index {index} out of range (0-{len(probes) - 1})"
        )
    return probes[index]


def resolve_format(fw_path: str, format_kind: Optional[FormatKind] = None) -> FormatKind:
    """Explicit format wins; otherwise derive it from the file extension."""
    if format_kind is not None:
        return format_kind
    return FormatKind.from_path(fw_path)


class FlashOrchestrator:
    """
    Drives open -> attach -> download for one firmware image.

    The individual steps can be called directly (they raise the boundary
    errors), or run() performs the whole sequence and maps failures to a
    FlashOutcome.

    Example:
        orchestrator = FlashOrchestrator(probe_registry, flasher, target_registry)
        probe = select_probe(probe_registry.list_all(), index)
        result = orchestrator.run(image, probe)
        print(result.message)
    """

    def __init__(
        self,
        probe_registry: ProbeRegistry,
        flasher: Flasher,
        target_registry: Optional[TargetRegistry] = None,
    ):
        self.probe_registry = probe_registry
        self.flasher = flasher
        self.target_registry = target_registry
        self.state = FlashState.IDLE
        self.states: List[FlashState] = [FlashState.IDLE]

    def _enter(self, state: FlashState) -> None:
        self.state = state
        self.states.append(state)
        logger.debug(f"Flash state -> {state.value}")

    def _expect(self, state: FlashState, step: str) -> None:
        if self.state is not state:
            raise FlashSequenceError(
                f"Cannot {step} in state '{self.state.value}' (expected '{state.value}')"
            )

    def reset(self) -> None:
        self.state = FlashState.IDLE
        self.states = [FlashState.IDLE]

    def open(self, probe: ProbeDescriptor) -> ProbeSession:
        """Open the selected probe. Raises ProbeOpenError."""
        self._expect(FlashState.IDLE, "open probe")
        try:
            session = self.probe_registry.open(probe)
        except ProbeOpenError:
            self._enter(FlashState.FAILED)
            raise
        self._enter(FlashState.PROBE_OPENED)
        return session

    def check_target(self, chip_type: str, chip_family: Optional[str] = None) -> None:
        """
        Validate a chip selection against the target registry, if one is set.

        Raises:
            UnknownFamilyError: If chip_family is given and unknown
            UnknownChipTypeError: If chip_type is not a known target (of that family)
        """
        if self.target_registry is None:
            return
        if chip_family:
            targets = self.target_registry.targets_for_family(chip_family)
            if chip_type not in targets and chip_type.lower() not in targets:
                raise UnknownChipTypeError(chip_type, chip_family)
        elif not self.target_registry.is_known_target(chip_type):
            raise UnknownChipTypeError(chip_type)

    def attach(
        self,
        session: ProbeSession,
        chip_type: str,
        permissions: Optional[Permissions] = None,
        chip_family: Optional[str] = None,
    ) -> ProbeSession:
        """Attach to the target chip. Raises AttachError."""
        self._expect(FlashState.PROBE_OPENED, "attach")
        try:
            self.check_target(chip_type, chip_family)
            attached = self.flasher.attach(session, chip_type, permissions or Permissions())
        except AttachError:
            self._enter(FlashState.FAILED)
            raise
        self._enter(FlashState.ATTACHED)
        return attached

    def download(self, session: ProbeSession, fw_path: str, format_kind: FormatKind) -> None:
        """Write the artifact to the attached target. Raises DownloadError."""
        self._expect(FlashState.ATTACHED, "download")
        try:
            if not Path(fw_path).is_file():
                raise DownloadError(f"Firmware file not found: {fw_path}")
            if not os.access(fw_path, os.R_OK):
                raise DownloadError(f"Firmware file not readable: {fw_path}")
            self.flasher.download(session, fw_path, format_kind)
        except DownloadError:
            self._enter(FlashState.FAILED)
            raise
        self._enter(FlashState.DOWNLOADED)

    def run(
        self,
        firmware: FirmwareImage,
        probe: ProbeDescriptor,
        format_kind: Optional[FormatKind] = None,
        permissions: Optional[Permissions] = None,
    ) -> FlashResult:
        """
        Flash one firmware image through the given probe.

        Args:
            firmware: Catalog entry to flash
            probe: The caller-selected probe
            format_kind: Artifact format; derived from fw_path when omitted
            permissions: Flasher permissions (default: no full chip erase)

        Returns:
            FlashResult with exactly one terminal outcome
        """
        self.reset()
        logger.info(f"Flashing {firmware.label()} via {probe.identifier}")

        try:
            session = self.open(probe)
        except ProbeOpenError as e:
            logger.error(f"Probe open failed: {e}")
            return self._result(FlashOutcome.PROBE_OPEN_FAILED, str(e))

        try:
            try:
                session = self.attach(session, firmware.chip_type, permissions, firmware.chip_family)
            except AttachError as e:
                logger.error(f"Attach failed: {e}")
                return self._result(FlashOutcome.ATTACH_FAILED, str(e))

            try:
                fmt = resolve_format(firmware.fw_path, format_kind)
            except ValueError as e:
                self._enter(FlashState.FAILED)
                logger.error(f"Download failed: {e}")
                return self._result(FlashOutcome.DOWNLOAD_FAILED, str(e))

            try:
                self.download(session, firmware.fw_path, fmt)
            except DownloadError as e:
                logger.error(f"Download failed: {e}")
                return self._result(FlashOutcome.DOWNLOAD_FAILED, str(e), fmt)

            return self._result(FlashOutcome.SUCCESS, format_kind=fmt)
        finally:
            session.close()

    def _result(
        self,
        outcome: FlashOutcome,
        detail: str = "",
        format_kind: Optional[FormatKind] = None,
    ) -> FlashResult:
        return FlashResult(
            outcome=outcome,
            detail=detail,
            states=list(self.states),
            format_kind=format_kind,
        )
