"""Tests for the core workflow actions shared by CLI and Streamlit."""

import hashlib
import json
from dataclasses import replace
from pathlib import Path

import pytest

from iap_flasher.catalog import Catalog, FirmwareImage, load_catalog, save_catalog
from iap_flasher.core.actions import (
    AmbiguousEntryError,
    EntryNotFoundError,
    delete_entry,
    find_entry,
    flash_firmware,
    open_catalog,
    refresh_probes,
    save_entry,
)
from iap_flasher.core import flashing as flashing_module
from iap_flasher.core.flashing import FlashOrchestrator, FlashOutcome
from iap_flasher.core.safety import CONFIRMATION_TOKEN, PermissionDeniedError, SafetyContext
from iap_flasher.probe.interfaces import FormatKind

from conftest import FakeFlasher, FakeProbeRegistry, FakeTargetRegistry


@pytest.fixture
def admin():
    return SafetyContext(admin_mode=True)


@pytest.fixture
def confirmed():
    return SafetyContext(confirmation_token=CONFIRMATION_TOKEN, interactive=False)


class TestOpenCatalog:

    def test_missing_file(self, tmp_path):
        catalog, result = open_catalog(tmp_path / "app_data.json")
        assert catalog.is_empty
        assert result.ok
        assert result.metadata["load_error"] == "CatalogIOError"
        assert result.warnings[0].startswith("Using empty catalog")

    def test_existing_file(self, tmp_path, catalog):
        path = tmp_path / "app_data.json"
        save_catalog(catalog, path)
        loaded, result = open_catalog(path)
        assert loaded == catalog
        assert result.warnings == []
        assert result.metadata["series"] == 2
        assert result.metadata["images"] == 3

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "app_data.json"
        path.write_bytes(b'{"series": [{"name": "\xe9t\xe9"}]}')
        catalog, result = open_catalog(path)
        assert catalog.is_empty
        assert result.ok
        assert result.metadata["load_error"] == "CatalogParseError"


class TestFindEntry:

    def test_found(self, catalog):
        assert find_entry(catalog, "Sensors", "TH-2", "Sensor").version == "2.1"

    def test_not_found(self, catalog):
        with pytest.raises(EntryNotFoundError, match="Sensors/TH-2/Nope"):
            find_entry(catalog, "Sensors", "TH-2", "Nope")

    def test_ambiguous_until_narrowed(self, catalog, image):
        catalog.series[0].products[0].firmware.append(replace(image, version="1.1"))

        with pytest.raises(AmbiguousEntryError) as exc_info:
            find_entry(catalog, "Gateways", "GW-100", "App")
        assert len(exc_info.value.matches) == 2

        assert find_entry(catalog, "Gateways", "GW-100", "App", version="1.1").version == "1.1"


class TestSaveEntry:

    def test_requires_admin(self, tmp_path, image):
        catalog = Catalog()
        path = tmp_path / "app_data.json"
        with pytest.raises(PermissionDeniedError, match="Admin mode required"):
            save_entry(catalog, path, "S", "P", image, SafetyContext())
        assert catalog.is_empty
        assert not path.exists()

    def test_saves_and_persists(self, tmp_path, image, admin):
        catalog = Catalog()
        path = tmp_path / "app_data.json"

        result = save_entry(catalog, path, "Gateways", "GW-100", image, admin)

        assert result.ok
        assert result.metadata["saved"] is True
        assert result.metadata["entry"]["chip_series"] == "STMicroelectronics"
        assert load_catalog(path) == catalog
        assert any("Added Gateways/GW-100" in line for line in result.logs)

    def test_missing_artifact_warns(self, tmp_path, image, admin):
        result = save_entry(
            Catalog(), tmp_path / "app_data.json", "S", "P", replace(image, fw_path="later.elf"), admin
        )
        assert result.ok
        assert result.warnings == ["Firmware file not found (yet): later.elf"]

    def test_blank_names_rejected(self, tmp_path, image, admin):
        catalog = Catalog()
        result = save_entry(catalog, tmp_path / "app_data.json", " ", "P", replace(image, name=""), admin)
        assert not result.ok
        assert result.errors == ["Series, Firmware name required"]
        assert catalog.is_empty

    def test_save_failure_keeps_edit_in_memory(self, tmp_path, image, admin):
        catalog = Catalog()
        result = save_entry(catalog, tmp_path / "missing" / "app_data.json", "S", "P", image, admin)
        assert not result.ok
        assert result.metadata["saved"] is False
        assert result.errors[0].startswith("Catalog save failed")
        assert catalog.image_count == 1

    def test_unencodable_entry_fails_save(self, tmp_path, image, admin):
        catalog = Catalog()
        path = tmp_path / "app_data.json"
        bad_path = b"/fw/app\xff.elf".decode("utf-8", "surrogateescape")

        result = save_entry(catalog, path, "S", "P", replace(image, fw_path=bad_path), admin)

        assert not result.ok
        assert result.metadata["saved"] is False
        assert result.errors[0].startswith("Catalog save failed: Cannot serialize catalog")
        assert not path.exists()
        assert catalog.image_count == 1


class TestDeleteEntry:

    def test_requires_admin(self, tmp_path, catalog):
        with pytest.raises(PermissionDeniedError):
            delete_entry(catalog, tmp_path / "app_data.json", "Sensors", "TH-2", "Sensor", SafetyContext())
        assert catalog.image_count == 3

    def test_deletes_and_persists(self, tmp_path, catalog, admin):
        path = tmp_path / "app_data.json"

        result = delete_entry(catalog, path, "Sensors", "TH-2", "Sensor", admin, version="2.1")

        assert result.ok
        assert result.metadata["removed"] == 1
        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert [s["name"] for s in on_disk["series"]] == ["Gateways"]

    def test_nothing_to_delete(self, tmp_path, catalog, admin):
        result = delete_entry(catalog, tmp_path / "app_data.json", "Sensors", "TH-2", "Nope", admin)
        assert result.ok
        assert result.metadata["removed"] == 0
        assert result.warnings == ["No firmware entry found: Sensors/TH-2/Nope"]


class TestRefreshProbes:

    def test_lists_probes(self, probes):
        result = refresh_probes(FakeProbeRegistry(probes))
        assert result.ok
        assert result.metadata["probes"] == probes
        assert result.warnings == []

    def test_no_probes(self):
        result = refresh_probes(FakeProbeRegistry())
        assert result.ok
        assert result.warnings == ["No debug probes found"]

    def test_backend_failure(self):
        result = refresh_probes(FakeProbeRegistry(fail_list=True))
        assert not result.ok
        assert result.metadata["probes"] == []
        assert "USB backend unavailable" in result.errors[0]


class TestFlashFirmware:

    def _orchestrator(self, probes, flasher=None, **kwargs):
        registry = FakeProbeRegistry(probes, **kwargs)
        return FlashOrchestrator(registry, flasher or FakeFlasher(), FakeTargetRegistry()), registry

    def test_success(self, probes, image, firmware_file, confirmed):
        orchestrator, _ = self._orchestrator(probes)

        result = flash_firmware(image, probes[1], orchestrator, confirmed)

        assert result.ok
        assert result.outcome is FlashOutcome.SUCCESS
        assert result.artifact.size == firmware_file.stat().st_size
        assert result.artifact.sha256 == hashlib.sha256(firmware_file.read_bytes()).hexdigest()
        assert [s.value for s in result.flash.states] == ["idle", "probe_opened", "attached", "downloaded"]
        assert result.flash.format_kind is FormatKind.ELF
        assert result.metadata["probe"] == "DAPLink CMSIS-DAP"
        assert result.message == "Download succeeded"

    def test_requires_confirmation(self, probes, image):
        orchestrator, registry = self._orchestrator(probes)
        with pytest.raises(PermissionDeniedError, match="confirmation token"):
            flash_firmware(image, probes[0], orchestrator, SafetyContext(interactive=False))
        assert registry.opened == []

    def test_failure_is_reported(self, probes, image, confirmed):
        orchestrator, _ = self._orchestrator(probes, fail_open=True)

        result = flash_firmware(image, probes[0], orchestrator, confirmed)

        assert not result.ok
        assert result.outcome is FlashOutcome.PROBE_OPEN_FAILED
        assert result.errors[0].startswith("Cannot open debug probe")
        assert result.flash.format_kind is None

    def test_unreadable_artifact_fails_download(self, probes, image, confirmed, monkeypatch):
        def denied(self):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "read_bytes", denied)
        monkeypatch.setattr(flashing_module.os, "access", lambda path, mode: False)
        flasher = FakeFlasher()
        orchestrator, registry = self._orchestrator(probes, flasher=flasher)

        result = flash_firmware(image, probes[0], orchestrator, confirmed)

        assert not result.ok
        assert result.outcome is FlashOutcome.DOWNLOAD_FAILED
        assert result.artifact is None
        assert result.warnings[0].startswith("Cannot read firmware file")
        assert "not readable" in result.errors[0]
        assert [call[0] for call in flasher.calls] == ["attach"]
        assert registry.sessions[0].close_count == 1
