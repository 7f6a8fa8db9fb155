"""
Catalog persistence.

Loads the catalog JSON document into memory and writes it back atomically.
A save always goes to a temporary file in the target directory and is then
moved over the old file with ``os.replace``, so a failed save never leaves a
truncated catalog behind.

There is no locking: one process, one writer, last write wins.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple, Union

from .model import Catalog, CatalogFormatError

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_FILENAME = "app_data.json"

PathLike = Union[str, Path]


class CatalogError(Exception):
    """Base exception for catalog persistence errors."""

    def __init__(self, message: str, path: Optional[PathLike] = None):
        self.path = Path(path) if path is not None else None
        super().__init__(message)


class CatalogIOError(CatalogError):
    """Catalog file could not be read or written."""
    pass


class CatalogParseError(CatalogError):
    """Catalog file is not a valid catalog document."""
    pass


class CatalogSerializeError(CatalogError):
    """Catalog could not be serialized."""
    pass


def load_catalog(path: PathLike) -> Catalog:
    """
    Read and deserialize a catalog file.

    Args:
        path: Catalog file path

    Returns:
        The loaded Catalog

    Raises:
        CatalogIOError: If the file cannot be read
        CatalogParseError: If the content is not UTF-8 JSON or has the wrong layout
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise CatalogIOError(f"Cannot read catalog {path}: {e}", path) from e

    try:
        data = json.loads(raw.decode("utf-8"))
        catalog = Catalog.from_dict(data)
    except (UnicodeDecodeError, json.JSONDecodeError, CatalogFormatError) as e:
        raise CatalogParseError(f"Invalid catalog {path}: {e}", path) from e

    logger.debug(f"Loaded catalog {path} ({len(catalog.series)} series)")
    return catalog


def save_catalog(catalog: Catalog, path: PathLike) -> None:
    """
    Serialize the whole catalog and atomically replace the file.

    Raises:
        CatalogSerializeError: If the catalog cannot be encoded as UTF-8 JSON
        CatalogIOError: If the temporary file cannot be written or moved into place
    """
    path = Path(path)
    try:
        data = json.dumps(catalog.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise CatalogSerializeError(f"Cannot serialize catalog: {e}", path) from e

    tmp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            "wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_path = Path(tmp.name)
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    except OSError as e:
        raise CatalogIOError(f"Cannot write catalog {path}: {e}", path) from e
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)

    logger.info(f"Saved catalog {path}")


def load_catalog_or_empty(path: PathLike) -> Tuple[Catalog, Optional[CatalogError]]:
    """
    Load a catalog, substituting an empty one on failure.

    Startup must never abort because of a bad catalog file; the error is
    returned so the caller can report it.
    """
    try:
        return load_catalog(path), None
    except CatalogError as e:
        logger.warning(f"Using empty catalog: {e}")
        return Catalog(), e


class CatalogStore:
    """
    A catalog bound to its backing file.

    Example:
        store = CatalogStore("app_data.json")
        warning = store.load_or_empty()
        upsert_image(store.catalog, "Series", "Product", image)
        store.save()
    """

    def __init__(self, path: PathLike = DEFAULT_CATALOG_FILENAME, catalog: Optional[Catalog] = None):
        self.path = Path(path)
        self.catalog = catalog if catalog is not None else Catalog()

    def load(self) -> Catalog:
        """Load from disk, raising on failure. Replaces the in-memory catalog."""
        self.catalog = load_catalog(self.path)
        return self.catalog

    def load_or_empty(self) -> Optional[CatalogError]:
        """Load from disk, falling back to an empty catalog. Returns the error, if any."""
        self.catalog, error = load_catalog_or_empty(self.path)
        return error

    def save(self) -> None:
        """Persist the in-memory catalog."""
        save_catalog(self.catalog, self.path)
