"""Tests for the catalog data model and its JSON layout."""

import pytest

from iap_flasher.catalog import Catalog, CatalogFormatError, FirmwareImage


class TestFirmwareImage:

    def test_label(self):
        image = FirmwareImage("App", "1.2.0", "app.elf", "STMicroelectronics", "stm32f103rc")
        assert image.label() == "App - 1.2.0 (stm32f103rc)"

    def test_key_excludes_path(self):
        a = FirmwareImage("App", "1.0", "a.elf", "NXP", "lpc1768")
        b = FirmwareImage("App", "1.0", "b.elf", "NXP", "lpc1768")
        assert a.key == b.key == ("App", "1.0", "NXP", "lpc1768")

    def test_chip_family_stored_as_chip_series(self):
        data = FirmwareImage("App", "1.0", "a.elf", "NXP", "lpc1768").to_dict()
        assert list(data) == ["name", "version", "fw_path", "chip_series", "chip_type"]
        assert data["chip_series"] == "NXP"

    def test_from_dict_missing_field(self):
        with pytest.raises(CatalogFormatError, match="chip_series"):
            FirmwareImage.from_dict(
                {"name": "App", "version": "1.0", "fw_path": "a.elf", "chip_type": "x"}
            )

    def test_from_dict_wrong_type(self):
        with pytest.raises(CatalogFormatError, match="must be a string"):
            FirmwareImage.from_dict(
                {"name": "App", "version": 1, "fw_path": "", "chip_series": "", "chip_type": ""}
            )


class TestCatalog:

    def test_empty(self):
        catalog = Catalog()
        assert catalog.is_empty
        assert catalog.image_count == 0
        assert catalog.to_dict() == {"series": []}

    def test_lookups(self, catalog):
        assert catalog.find_series("Sensors").name == "Sensors"
        assert catalog.find_series("Nope") is None
        assert catalog.find_product("Gateways", "GW-100").name == "GW-100"
        assert catalog.find_product("Gateways", "Nope") is None
        assert catalog.find_product("Nope", "GW-100") is None

    def test_find_images_by_name(self, catalog):
        images = catalog.find_images("Gateways", "GW-100", "Bootloader")
        assert [i.version for i in images] == ["0.9"]
        assert catalog.find_images("Gateways", "GW-100", "Missing") == []

    def test_iter_images_in_display_order(self, catalog):
        walked = [(s.name, p.name, i.name) for s, p, i in catalog.iter_images()]
        assert walked == [
            ("Gateways", "GW-100", "App"),
            ("Gateways", "GW-100", "Bootloader"),
            ("Sensors", "TH-2", "Sensor"),
        ]
        assert catalog.image_count == 3

    def test_dict_round_trip(self, catalog):
        assert Catalog.from_dict(catalog.to_dict()) == catalog

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(CatalogFormatError):
            Catalog.from_dict([])

    def test_from_dict_reports_location(self):
        data = {"series": [{"name": "S", "products": [{"name": "P", "firmware": [42]}]}]}
        with pytest.raises(CatalogFormatError, match=r"series\[0\]/S/products\[0\]/P/firmware\[0\]"):
            Catalog.from_dict(data)
