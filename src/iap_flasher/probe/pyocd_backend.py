"""
pyOCD implementations of the probe, target and flasher boundaries.

- PyocdProbeRegistry: enumerates and opens CMSIS-DAP / ST-Link / J-Link probes
- PyocdTargetRegistry: built-in pyOCD target table grouped by vendor (chip family)
- PyocdFlasher: attaches a pyOCD Session and programs ELF/HEX/BIN files

Example:
    registry = PyocdProbeRegistry()
    probes = registry.list_all()
    session = registry.open(probes[0])
    flasher = PyocdFlasher()
    flasher.attach(session, "stm32f103rc", Permissions())
    flasher.download(session, "app.elf", FormatKind.ELF)
    session.close()
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

try:
    from pyocd.core.helpers import ConnectHelper
    from pyocd.core.session import Session
    from pyocd.flash.file_programmer import FileProgrammer
    from pyocd.target import TARGET
except ImportError:
    raise ImportError("pyOCD required: pip install pyocd")

from .interfaces import (
    AttachError,
    DownloadError,
    FormatKind,
    Permissions,
    ProbeDescriptor,
    ProbeOpenError,
    UnknownChipTypeError,
    UnknownFamilyError,
)

logger = logging.getLogger(__name__)

logging.getLogger("pyocd").setLevel(logging.WARNING)

GENERIC_FAMILY = "Generic"


def _erase_mode(permissions: Permissions) -> str:
    return "chip" if permissions.allow_erase_all else "sector"


def _close_failed_session(pyocd_session) -> None:
    # Session.open() may fail after it has claimed the probe
    try:
        pyocd_session.close()
    except Exception as e:
        logger.debug(f"Closing failed session raised: {e}")


class PyocdProbeSession:
    """
    An opened pyOCD debug probe, and after attach, its target session.

    Close it exactly once when the flash sequence is over.
    """

    def __init__(self, descriptor: ProbeDescriptor, probe):
        self.descriptor = descriptor
        self.probe = probe
        self.session: Optional[Session] = None
        self.permissions = Permissions()
        self._probe_claimed = True

    def release_probe(self) -> None:
        """Give up the raw probe claim so a pyOCD Session can take it over."""
        if self._probe_claimed:
            self.probe.close()
            self._probe_claimed = False

    def close(self) -> None:
        if self.session is not None:
            self.session.close()
            self.session = None
            logger.debug(f"Closed session on {self.descriptor.identifier}")
        self.release_probe()


class PyocdProbeRegistry:
    """Probe enumeration through pyOCD's ConnectHelper."""

    def list_all(self) -> List[ProbeDescriptor]:
        probes = ConnectHelper.get_all_connected_probes(blocking=False, print_wait_message=False)
        descriptors = [
            ProbeDescriptor(identifier=probe.description, serial_number=probe.unique_id or None)
            for probe in probes
        ]
        logger.debug(f"Found {len(descriptors)} debug probe(s)")
        return descriptors

    def open(self, descriptor: ProbeDescriptor) -> PyocdProbeSession:
        try:
            matches = ConnectHelper.get_all_connected_probes(
                blocking=False,
                unique_id=descriptor.serial_number,
                print_wait_message=False,
            )
        except Exception as e:
            raise ProbeOpenError(f"Cannot enumerate probes: {e}") from e

        matches = [p for p in matches if p.description == descriptor.identifier]
        if not matches:
            raise ProbeOpenError(f"Probe not connected: {descriptor.identifier}")

        probe = matches[0]
        try:
            probe.open()
        except Exception as e:
            raise ProbeOpenError(f"Cannot open probe {descriptor.identifier}: {e}") from e

        logger.info(f"Opened probe {descriptor.identifier} ({descriptor.serial_number or 'no serial'})")
        return PyocdProbeSession(descriptor, probe)


class PyocdTargetRegistry:
    """
    Target database backed by pyOCD's built-in target table.

    pyOCD has no notion of a chip family, so the target vendor is used.
    """

    def __init__(self, targets: Optional[Dict[str, type]] = None):
        self._targets = TARGET if targets is None else targets
        self._by_family: Optional[Dict[str, List[str]]] = None

    def _index(self) -> Dict[str, List[str]]:
        if self._by_family is None:
            by_family: Dict[str, List[str]] = {}
            for name, target_class in self._targets.items():
                family = getattr(target_class, "VENDOR", None) or GENERIC_FAMILY
                by_family.setdefault(family, []).append(name)
            self._by_family = {
                family: sorted(names) for family, names in sorted(by_family.items())
            }
        return self._by_family

    def families(self) -> List[str]:
        return list(self._index())

    def targets_for_family(self, name: str) -> List[str]:
        try:
            return list(self._index()[name])
        except KeyError:
            raise UnknownFamilyError(name)

    def is_known_target(self, chip_type: str) -> bool:
        return chip_type.lower() in self._targets


class PyocdFlasher:
    """Attach and download through pyOCD Session / FileProgrammer."""

    def __init__(self, frequency: Optional[int] = None, targets: Optional[Dict[str, type]] = None):
        self.frequency = frequency
        self._targets = TARGET if targets is None else targets

    def attach(
        self,
        session: PyocdProbeSession,
        chip_type: str,
        permissions: Permissions,
    ) -> PyocdProbeSession:
        target = chip_type.lower()
        if target not in self._targets:
            raise UnknownChipTypeError(chip_type)

        options = {
            "chip_erase": _erase_mode(permissions),
            "resume_on_disconnect": False,
        }
        if self.frequency:
            options["frequency"] = self.frequency

        # pyOCD's Session claims the probe itself on open()
        session.release_probe()
        pyocd_session = None
        try:
            pyocd_session = Session(session.probe, options=options, target_override=target)
            pyocd_session.open()
        except Exception as e:
            if pyocd_session is not None:
                _close_failed_session(pyocd_session)
            raise AttachError(f"Cannot attach to '{chip_type}': {e}") from e

        session.session = pyocd_session
        session.permissions = permissions
        logger.info(f"Attached to {chip_type} via {session.descriptor.identifier}")
        return session

    def download(
        self,
        session: PyocdProbeSession,
        path: Union[str, Path],
        format_kind: FormatKind,
    ) -> None:
        if session.session is None:
            raise DownloadError("Probe is not attached to a target")

        try:
            programmer = FileProgrammer(session.session, chip_erase=_erase_mode(session.permissions))
            programmer.program(str(path), file_format=format_kind.value)
        except Exception as e:
            raise DownloadError(f"Download of {path} failed: {e}") from e

        logger.info(f"Downloaded {path} ({format_kind.value})")
