"""
Catalog editing operations.

Pure functions over a Catalog value. They mutate the catalog in place and
never touch the filesystem; persisting is a separate, explicit step.
"""

import logging
from typing import Optional

from .model import Catalog, FirmwareImage, Product, Series

logger = logging.getLogger(__name__)


def upsert_image(
    catalog: Catalog,
    series_name: str,
    product_name: str,
    image: FirmwareImage,
) -> None:
    """
    Insert or replace a firmware image.

    Missing series and product nodes are created and appended. An existing
    image with the same identity key (name, version, chip_family, chip_type)
    is overwritten in place, keeping its position; otherwise the image is
    appended. Applying the same image twice leaves a single entry.
    """
    series = catalog.find_series(series_name)
    if series is None:
        series = Series(name=series_name)
        catalog.series.append(series)
        logger.debug(f"Created series '{series_name}'")

    product = series.find_product(product_name)
    if product is None:
        product = Product(name=product_name)
        series.products.append(product)
        logger.debug(f"Created product '{series_name}/{product_name}'")

    index = product.find_image(image.key)
    if index is None:
        product.firmware.append(image)
        logger.info(f"Added {series_name}/{product_name}: {image.label()}")
    else:
        product.firmware[index] = image
        logger.info(f"Updated {series_name}/{product_name}: {image.label()}")


def delete_image(
    catalog: Catalog,
    series_name: str,
    product_name: str,
    image_name: str,
    *,
    version: Optional[str] = None,
    chip_family: Optional[str] = None,
    chip_type: Optional[str] = None,
) -> int:
    """
    Remove firmware images from a product, then prune empty nodes.

    Images are matched on name. Each of ``version``, ``chip_family`` and
    ``chip_type`` narrows the match when given; passing all three matches
    exactly the identity key used by upsert_image. A name-only delete removes
    every version and chip type sharing that name.

    Deleting something that does not exist is a no-op.

    Returns:
        Number of images removed
    """
    removed = 0
    product = catalog.find_product(series_name, product_name)
    if product is not None:
        kept = []
        for image in product.firmware:
            if (
                image.name == image_name
                and (version is None or image.version == version)
                and (chip_family is None or image.chip_family == chip_family)
                and (chip_type is None or image.chip_type == chip_type)
            ):
                removed += 1
            else:
                kept.append(image)
        product.firmware[:] = kept

    prune_empty(catalog)

    if removed:
        logger.info(f"Removed {removed} image(s) named '{image_name}' from {series_name}/{product_name}")
    return removed


def prune_empty(catalog: Catalog) -> None:
    """Drop every empty product and every series left without products."""
    for series in catalog.series:
        series.products[:] = [p for p in series.products if p.firmware]
    catalog.series[:] = [s for s in catalog.series if s.products]
