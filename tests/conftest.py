"""Shared fakes for the probe, target and flasher boundaries."""

import pytest

from iap_flasher.catalog import Catalog, FirmwareImage, upsert_image
from iap_flasher.probe.interfaces import (
    AttachError,
    DownloadError,
    ProbeDescriptor,
    ProbeOpenError,
    UnknownFamilyError,
)


class FakeSession:
    def __init__(self, descriptor):
        self.descriptor = descriptor
        self.close_count = 0
        self.chip_type = None

    def close(self):
        self.close_count += 1


class FakeProbeRegistry:
    def __init__(self, probes=(), fail_open=False, fail_list=False):
        self.probes = list(probes)
        self.fail_open = fail_open
        self.fail_list = fail_list
        self.opened = []
        self.sessions = []

    def list_all(self):
        if self.fail_list:
            raise RuntimeError("USB backend unavailable")
        return list(self.probes)

    def open(self, descriptor):
        self.opened.append(descriptor)
        if self.fail_open:
            raise ProbeOpenError(f"Probe busy: {descriptor.identifier}")
        session = FakeSession(descriptor)
        self.sessions.append(session)
        return session


class FakeTargetRegistry:
    def __init__(self, targets=None):
        self.targets = targets or {
            "STMicroelectronics": ["stm32f103rc", "stm32f429xi"],
            "NXP": ["lpc1768"],
        }

    def families(self):
        return sorted(self.targets)

    def targets_for_family(self, name):
        if name not in self.targets:
            raise UnknownFamilyError(name)
        return list(self.targets[name])

    def is_known_target(self, chip_type):
        return any(chip_type.lower() in names for names in self.targets.values())


class FakeFlasher:
    def __init__(self, fail_attach=False, fail_download=False):
        self.fail_attach = fail_attach
        self.fail_download = fail_download
        self.calls = []

    def attach(self, session, chip_type, permissions):
        self.calls.append(("attach", chip_type, permissions))
        if self.fail_attach:
            raise AttachError("No ACK from target")
        session.chip_type = chip_type
        return session

    def download(self, session, path, format_kind):
        self.calls.append(("download", str(path), format_kind))
        if self.fail_download:
            raise DownloadError("Flash algorithm timed out")


@pytest.fixture
def probes():
    return [
        ProbeDescriptor("STLink-V3", "0670FF3632"),
        ProbeDescriptor("DAPLink CMSIS-DAP", "0240000034"),
    ]


@pytest.fixture
def firmware_file(tmp_path):
    path = tmp_path / "app.elf"
    path.write_bytes(b"\x7fELF" + bytes(range(60)))
    return path


@pytest.fixture
def image(firmware_file):
    return FirmwareImage(
        name="App",
        version="1.0",
        fw_path=str(firmware_file),
        chip_family="STMicroelectronics",
        chip_type="stm32f103rc",
    )


@pytest.fixture
def catalog(image):
    cat = Catalog()
    upsert_image(cat, "Gateways", "GW-100", image)
    upsert_image(
        cat,
        "Gateways",
        "GW-100",
        FirmwareImage("Bootloader", "0.9", "boot.hex", "STMicroelectronics", "stm32f103rc"),
    )
    upsert_image(
        cat,
        "Sensors",
        "TH-2",
        FirmwareImage("Sensor", "2.1", "sensor.bin", "NXP", "lpc1768"),
    )
    return cat
