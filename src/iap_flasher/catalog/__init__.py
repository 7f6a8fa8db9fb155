"""
Firmware catalog: data model, persistence and editing.
"""

from .model import (
    Catalog,
    Series,
    Product,
    FirmwareImage,
    ImageKey,
    CatalogFormatError,
)
from .store import (
    CatalogStore,
    CatalogError,
    CatalogIOError,
    CatalogParseError,
    CatalogSerializeError,
    DEFAULT_CATALOG_FILENAME,
    load_catalog,
    save_catalog,
    load_catalog_or_empty,
)
from .editor import upsert_image, delete_image, prune_empty

__all__ = [
    # Model
    "Catalog",
    "Series",
    "Product",
    "FirmwareImage",
    "ImageKey",
    "CatalogFormatError",
    # Store
    "CatalogStore",
    "CatalogError",
    "CatalogIOError",
    "CatalogParseError",
    "CatalogSerializeError",
    "DEFAULT_CATALOG_FILENAME",
    "load_catalog",
    "save_catalog",
    "load_catalog_or_empty",
    # Editor
    "upsert_image",
    "delete_image",
    "prune_empty",
]
