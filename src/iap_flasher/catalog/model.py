"""
Firmware catalog data model.

The catalog is a strict tree:

    Catalog
      └── Series (unique name)
            └── Product (unique name within its series)
                  └── FirmwareImage (unique identity key within its product)

All nodes are plain dataclasses that serialize to the JSON document layout
used by earlier catalogs (``series`` / ``products`` / ``firmware`` and
``chip_series`` for the chip family). Key names and field order must not
change, or older catalog files stop round-tripping.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

# On-disk key for FirmwareImage.chip_family
CHIP_FAMILY_KEY = "chip_series"

ImageKey = Tuple[str, str, str, str]


class CatalogFormatError(ValueError):
    """Raised when a catalog document does not match the expected layout."""
    pass


def _require_str(data: Dict[str, Any], key: str, where: str) -> str:
    if key not in data:
        raise CatalogFormatError(f"{where}: missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise CatalogFormatError(
            f"{where}: field '{key}' must be a string, got {type(value).__name__}"
        )
    return value


def _require_list(data: Dict[str, Any], key: str, where: str) -> List[Any]:
    if key not in data:
        raise CatalogFormatError(f"{where}: missing field '{key}'")
    value = data[key]
    if not isinstance(value, list):
        raise CatalogFormatError(
            f"{where}: field '{key}' must be a list, got {type(value).__name__}"
        )
    return value


def _require_dict(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise CatalogFormatError(f"{where}: expected an object, got {type(value).__name__}")
    return value


@dataclass
class FirmwareImage:
    """
    One flashable firmware artifact.

    Attributes:
        name: Firmware name shown to technicians
        version: Free-form version string
        fw_path: Path to the ELF/HEX/BIN artifact (checked at flash time only)
        chip_family: Target family identifier (pyOCD vendor name)
        chip_type: Target chip identifier (pyOCD target name)
    """
    name: str = ""
    version: str = ""
    fw_path: str = ""
    chip_family: str = ""
    chip_type: str = ""

    @property
    def key(self) -> ImageKey:
        """Identity key used to match an existing image on upsert."""
        return (self.name, self.version, self.chip_family, self.chip_type)

    def label(self) -> str:
        """Short label used in catalog listings."""
        return f"{self.name} - {self.version} ({self.chip_type})"

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "version": self.version,
            "fw_path": self.fw_path,
            CHIP_FAMILY_KEY: self.chip_family,
            "chip_type": self.chip_type,
        }

    @classmethod
    def from_dict(cls, data: Any, where: str = "firmware") -> "FirmwareImage":
        data = _require_dict(data, where)
        return cls(
            name=_require_str(data, "name", where),
            version=_require_str(data, "version", where),
            fw_path=_require_str(data, "fw_path", where),
            chip_family=_require_str(data, CHIP_FAMILY_KEY, where),
            chip_type=_require_str(data, "chip_type", where),
        )


@dataclass
class Product:
    """A device line within a series, owning its firmware variants."""
    name: str
    firmware: List[FirmwareImage] = field(default_factory=list)

    def find_image(self, key: ImageKey) -> Optional[int]:
        """Return the index of the image with the given identity key, if any."""
        for index, image in enumerate(self.firmware):
            if image.key == key:
                return index
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "firmware": [image.to_dict() for image in self.firmware],
        }

    @classmethod
    def from_dict(cls, data: Any, where: str = "product") -> "Product":
        data = _require_dict(data, where)
        name = _require_str(data, "name", where)
        items = _require_list(data, "firmware", where)
        return cls(
            name=name,
            firmware=[
                FirmwareImage.from_dict(item, f"{where}/{name}/firmware[{i}]")
                for i, item in enumerate(items)
            ],
        )


@dataclass
class Series:
    """Top-level grouping of related products."""
    name: str
    products: List[Product] = field(default_factory=list)

    def find_product(self, name: str) -> Optional[Product]:
        for product in self.products:
            if product.name == name:
                return product
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "products": [product.to_dict() for product in self.products],
        }

    @classmethod
    def from_dict(cls, data: Any, where: str = "series") -> "Series":
        data = _require_dict(data, where)
        name = _require_str(data, "name", where)
        items = _require_list(data, "products", where)
        return cls(
            name=name,
            products=[
                Product.from_dict(item, f"{where}/{name}/products[{i}]")
                for i, item in enumerate(items)
            ],
        )


@dataclass
class Catalog:
    """
    Root of the firmware catalog.

    Owned explicitly by the caller and passed into editor functions; there
    is no module-level catalog instance.
    """
    series: List[Series] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.series

    @property
    def image_count(self) -> int:
        return sum(1 for _ in self.iter_images())

    def find_series(self, name: str) -> Optional[Series]:
        for series in self.series:
            if series.name == name:
                return series
        return None

    def find_product(self, series_name: str, product_name: str) -> Optional[Product]:
        series = self.find_series(series_name)
        if series is None:
            return None
        return series.find_product(product_name)

    def find_images(
        self,
        series_name: str,
        product_name: str,
        image_name: str,
    ) -> List[FirmwareImage]:
        """Return every image in the product with the given name (all versions)."""
        product = self.find_product(series_name, product_name)
        if product is None:
            return []
        return [image for image in product.firmware if image.name == image_name]

    def iter_images(self) -> Iterator[Tuple[Series, Product, FirmwareImage]]:
        """Walk the tree in display order."""
        for series in self.series:
            for product in series.products:
                for image in product.firmware:
                    yield series, product, image

    def to_dict(self) -> Dict[str, Any]:
        return {"series": [series.to_dict() for series in self.series]}

    @classmethod
    def from_dict(cls, data: Any) -> "Catalog":
        data = _require_dict(data, "catalog")
        items = _require_list(data, "series", "catalog")
        return cls(
            series=[Series.from_dict(item, f"series[{i}]") for i, item in enumerate(items)]
        )
