"""
IAP Flasher - firmware catalog and debug-probe flashing tool

Curate a catalog of firmware images by series and product, then program a
selected image onto a target chip through a pyOCD debug probe.
"""

__version__ = "0.1.0"

from iap_flasher.catalog import Catalog, FirmwareImage, CatalogStore
from iap_flasher.core.flashing import FlashOrchestrator, FlashOutcome

__all__ = [
    "Catalog",
    "FirmwareImage",
    "CatalogStore",
    "FlashOrchestrator",
    "FlashOutcome",
    "__version__",
]
