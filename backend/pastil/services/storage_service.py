# Overview: Object-storage usage accounting for product images; produces StorageCapacityWarning events.

"""
Rough estimate only: the image bucket is never listed byte-by-byte. Every
stored image is assumed to take at most STORAGE_BYTES_PER_IMAGE (compressed
uploads are capped at ~150 KB) against a STORAGE_LIMIT_MB quota.

    remaining < 20 MB  -> "critical"
    remaining < 50 MB  -> "notice"
    otherwise          -> no warning
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import FinishedProduct, InventoryItem
from .notification_service import NotificationSink, StorageCapacityWarning, get_notification_sink

CRITICAL_REMAINING_MB = 20
NOTICE_REMAINING_MB = 50


def estimate_remaining_mb(object_count: int, *, bytes_per_object: int, limit_mb: float) -> float:
    used_mb = (object_count * bytes_per_object) / (1024 * 1024)
    return limit_mb - used_mb


def build_storage_warning(remaining_mb: float) -> StorageCapacityWarning | None:
    if remaining_mb < CRITICAL_REMAINING_MB:
        return StorageCapacityWarning(
            remaining_estimate_mb=round(remaining_mb, 1),
            level="critical",
            message=f"Warning: Low storage! Only {remaining_mb:.1f} MB left!",
        )
    if remaining_mb < NOTICE_REMAINING_MB:
        return StorageCapacityWarning(
            remaining_estimate_mb=round(remaining_mb, 1),
            level="notice",
            message=f"Storage notice: {remaining_mb:.1f} MB remaining",
        )
    return None


def count_stored_images() -> int:
    products = db.session.query(func.count(FinishedProduct.id)).filter(FinishedProduct.image_path.isnot(None)).scalar()
    items = db.session.query(func.count(InventoryItem.id)).filter(InventoryItem.image_path.isnot(None)).scalar()
    return int(products or 0) + int(items or 0)


def check_storage(sink: NotificationSink | None = None) -> StorageCapacityWarning | None:
    """Estimate remaining quota and emit a warning when it runs low."""
    remaining = estimate_remaining_mb(
        count_stored_images(),
        bytes_per_object=current_app.config.get("STORAGE_BYTES_PER_IMAGE", 150000),
        limit_mb=current_app.config.get("STORAGE_LIMIT_MB", 1000),
    )
    warning = build_storage_warning(remaining)
    if warning is not None:
        (sink or get_notification_sink()).emit(warning)
        current_app.logger.warning("Object storage running low: %.1f MB remaining", remaining)
    return warning
