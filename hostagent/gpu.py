"""Graphics card discovery."""

from __future__ import annotations

import logging

from .dependencies import Dependencies
from .models import Gpu

logger = logging.getLogger(__name__)


def get_gpus(dependencies: Dependencies) -> list[Gpu]:
    """One record per graphics card; empty when the scan fails."""
    try:
        cards = dependencies.gpu()
    except OSError as exc:
        logger.warning("Error getting GPU info: %s", exc)
        return []
    gpus = []
    for card in cards:
        gpu = Gpu(address=card.address)
        if card.product is not None:
            gpu.name = card.product.name
            gpu.device_id = card.product.id
            gpu.vendor_id = card.product.vendor_id
        if card.vendor is not None:
            gpu.vendor = card.vendor.name
            if not gpu.vendor_id:
                gpu.vendor_id = card.vendor.id
        gpus.append(gpu)
    return gpus