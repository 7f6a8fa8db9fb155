"""Tests for the pyOCD adapters, with pyOCD's probe and session layers mocked."""

from unittest.mock import MagicMock

import pytest

pytest.importorskip("pyocd")

from iap_flasher.probe import pyocd_backend  # noqa: E402
from iap_flasher.probe.interfaces import (  # noqa: E402
    AttachError,
    DownloadError,
    FormatKind,
    Permissions,
    ProbeDescriptor,
    ProbeOpenError,
    UnknownChipTypeError,
    UnknownFamilyError,
)


class _Stm32F1:
    VENDOR = "STMicroelectronics"


class _Lpc:
    VENDOR = "NXP"


class _Plain:
    pass


TARGETS = {
    "stm32f103rc": _Stm32F1,
    "stm32f103c8": _Stm32F1,
    "lpc1768": _Lpc,
    "cortex_m": _Plain,
}


def _fake_probe(description, unique_id):
    probe = MagicMock()
    probe.description = description
    probe.unique_id = unique_id
    return probe


class TestTargetRegistry:

    def test_families_grouped_by_vendor(self):
        registry = pyocd_backend.PyocdTargetRegistry(TARGETS)
        assert registry.families() == ["Generic", "NXP", "STMicroelectronics"]
        assert registry.targets_for_family("STMicroelectronics") == ["stm32f103c8", "stm32f103rc"]
        assert registry.targets_for_family("Generic") == ["cortex_m"]

    def test_unknown_family(self):
        with pytest.raises(UnknownFamilyError):
            pyocd_backend.PyocdTargetRegistry(TARGETS).targets_for_family("Acme")

    def test_known_target_is_case_insensitive(self):
        registry = pyocd_backend.PyocdTargetRegistry(TARGETS)
        assert registry.is_known_target("STM32F103RC")
        assert not registry.is_known_target("stm32f999")

    def test_builtin_table(self):
        registry = pyocd_backend.PyocdTargetRegistry()
        assert registry.families()
        assert registry.is_known_target("cortex_m")


class TestProbeRegistry:

    @pytest.fixture
    def connect_helper(self, monkeypatch):
        helper = MagicMock()
        monkeypatch.setattr(pyocd_backend, "ConnectHelper", helper)
        return helper

    def test_list_all(self, connect_helper):
        connect_helper.get_all_connected_probes.return_value = [
            _fake_probe("STLink-V3", "0670FF3632"),
            _fake_probe("Generic CMSIS-DAP", ""),
        ]
        probes = pyocd_backend.PyocdProbeRegistry().list_all()
        assert probes == [
            ProbeDescriptor("STLink-V3", "0670FF3632"),
            ProbeDescriptor("Generic CMSIS-DAP", None),
        ]

    def test_open_matches_description(self, connect_helper):
        other = _fake_probe("DAPLink", "0670FF3632")
        wanted = _fake_probe("STLink-V3", "0670FF3632")
        connect_helper.get_all_connected_probes.return_value = [other, wanted]

        session = pyocd_backend.PyocdProbeRegistry().open(ProbeDescriptor("STLink-V3", "0670FF3632"))

        assert session.probe is wanted
        wanted.open.assert_called_once_with()
        other.open.assert_not_called()
        _, kwargs = connect_helper.get_all_connected_probes.call_args
        assert kwargs["unique_id"] == "0670FF3632"

    def test_open_missing_probe(self, connect_helper):
        connect_helper.get_all_connected_probes.return_value = []
        with pytest.raises(ProbeOpenError, match="not connected"):
            pyocd_backend.PyocdProbeRegistry().open(ProbeDescriptor("STLink-V3", "1"))

    def test_open_never_substitutes_another_probe(self, connect_helper):
        other = _fake_probe("DAPLink", "0240000034")
        connect_helper.get_all_connected_probes.return_value = [other]

        with pytest.raises(ProbeOpenError, match="not connected: STLink-V3"):
            pyocd_backend.PyocdProbeRegistry().open(ProbeDescriptor("STLink-V3", None))

        other.open.assert_not_called()

    def test_open_busy_probe(self, connect_helper):
        probe = _fake_probe("STLink-V3", "1")
        probe.open.side_effect = RuntimeError("LIBUSB_ERROR_BUSY")
        connect_helper.get_all_connected_probes.return_value = [probe]
        with pytest.raises(ProbeOpenError, match="LIBUSB_ERROR_BUSY"):
            pyocd_backend.PyocdProbeRegistry().open(ProbeDescriptor("STLink-V3", "1"))


class TestFlasher:

    @pytest.fixture
    def probe_session(self):
        return pyocd_backend.PyocdProbeSession(ProbeDescriptor("STLink-V3", "1"), MagicMock())

    def test_attach(self, monkeypatch, probe_session):
        session_class = MagicMock()
        monkeypatch.setattr(pyocd_backend, "Session", session_class)
        flasher = pyocd_backend.PyocdFlasher(frequency=4000000, targets=TARGETS)

        attached = flasher.attach(probe_session, "STM32F103RC", Permissions())

        assert attached is probe_session
        probe_session.probe.close.assert_called_once_with()
        args, kwargs = session_class.call_args
        assert args == (probe_session.probe,)
        assert kwargs["target_override"] == "stm32f103rc"
        assert kwargs["options"]["chip_erase"] == "sector"
        assert kwargs["options"]["frequency"] == 4000000
        session_class.return_value.open.assert_called_once_with()
        assert probe_session.session is session_class.return_value

    def test_attach_unknown_chip(self, monkeypatch, probe_session):
        session_class = MagicMock()
        monkeypatch.setattr(pyocd_backend, "Session", session_class)
        with pytest.raises(UnknownChipTypeError):
            pyocd_backend.PyocdFlasher(targets=TARGETS).attach(probe_session, "stm32f999", Permissions())
        session_class.assert_not_called()
        probe_session.probe.close.assert_not_called()

    def test_attach_failure(self, monkeypatch, probe_session):
        session_class = MagicMock()
        session_class.return_value.open.side_effect = RuntimeError("No ACK received")
        monkeypatch.setattr(pyocd_backend, "Session", session_class)
        with pytest.raises(AttachError, match="No ACK received"):
            pyocd_backend.PyocdFlasher(targets=TARGETS).attach(probe_session, "lpc1768", Permissions())
        session_class.return_value.close.assert_called_once_with()

    def test_attach_failure_close_error_keeps_attach_error(self, monkeypatch, probe_session):
        session_class = MagicMock()
        session_class.return_value.open.side_effect = RuntimeError("No ACK received")
        session_class.return_value.close.side_effect = RuntimeError("USB gone")
        monkeypatch.setattr(pyocd_backend, "Session", session_class)
        with pytest.raises(AttachError, match="No ACK received"):
            pyocd_backend.PyocdFlasher(targets=TARGETS).attach(probe_session, "lpc1768", Permissions())
        assert probe_session.session is None

    def test_download(self, monkeypatch, probe_session, firmware_file):
        programmer_class = MagicMock()
        monkeypatch.setattr(pyocd_backend, "FileProgrammer", programmer_class)
        probe_session.session = MagicMock()
        probe_session.permissions = Permissions(allow_erase_all=True)

        pyocd_backend.PyocdFlasher(targets=TARGETS).download(probe_session, firmware_file, FormatKind.HEX)

        programmer_class.assert_called_once_with(probe_session.session, chip_erase="chip")
        programmer_class.return_value.program.assert_called_once_with(
            str(firmware_file), file_format="hex"
        )

    def test_download_requires_attach(self, probe_session, firmware_file):
        with pytest.raises(DownloadError, match="not attached"):
            pyocd_backend.PyocdFlasher(targets=TARGETS).download(probe_session, firmware_file, FormatKind.ELF)

    def test_download_failure(self, monkeypatch, probe_session, firmware_file):
        programmer_class = MagicMock()
        programmer_class.return_value.program.side_effect = RuntimeError("flash algo error")
        monkeypatch.setattr(pyocd_backend, "FileProgrammer", programmer_class)
        probe_session.session = MagicMock()
        with pytest.raises(DownloadError, match="flash algo error"):
            pyocd_backend.PyocdFlasher(targets=TARGETS).download(probe_session, firmware_file, FormatKind.ELF)

    def test_close_releases_everything_once(self, probe_session):
        target_session = MagicMock()
        probe_session.session = target_session

        probe_session.close()
        probe_session.close()

        target_session.close.assert_called_once_with()
        probe_session.probe.close.assert_called_once_with()
