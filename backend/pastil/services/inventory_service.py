# Overview: Service-layer operations for raw-material stock; encapsulates business logic and database work.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import InventoryItem
from .concurrency import PersistenceError, persist
from .units import check_unit_type, round_quantity
"""
Inventory Invariants (authoritative)

- InventoryItem.qty is stored in STORAGE units and is never negative.
- Every quantity written goes through round_quantity(), so deduct-then-
  restore of the same amount returns exactly the earlier value.
- Writers re-read the row at write time; nothing computed from an earlier
  snapshot is written back.
- InventoryItem carries version_id; a concurrent writer on the same row
  triggers StaleDataError and the write is retried against fresh data.
- A deduction larger than the remaining quantity clamps to zero. The
  amount actually removed is returned so a reversal restores exactly that.
- Every public write commits on its own. There is no cross-item atomicity.
"""


@dataclass(frozen=True)
class StockChange:
    item_id: int
    before: float
    after: float
    requested: float
    applied: float

    @property
    def clamped(self) -> bool:
        return self.applied < self.requested

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "before": self.before,
            "after": self.after,
            "requested": self.requested,
            "applied": self.applied,
            "clamped": self.clamped,
        }


def _load_fresh(item_id: int) -> InventoryItem:
    item = (
        db.session.query(InventoryItem)
        .filter_by(id=item_id)
        .populate_existing()
        .first()
    )
    if item is None:
        raise PersistenceError("Inventory item not found", details={"item_id": item_id})
    return item


def deduct_stock(item_id: int, quantity: float) -> StockChange:
    """Remove `quantity` storage units from an item, clamping at zero."""
    if quantity < 0:
        raise ValueError("deduction quantity must be non-negative")
    quantity = round_quantity(quantity)

    def _op() -> StockChange:
        item = _load_fresh(item_id)
        before = item.qty
        after = round_quantity(max(0.0, before - quantity))
        item.qty = after
        db.session.commit()
        applied = quantity if before >= quantity else before
        return StockChange(item_id=item_id, before=before, after=after, requested=quantity, applied=applied)

    return persist(_op, action="deduct inventory", details={"item_id": item_id})


def restore_stock(item_id: int, quantity: float) -> StockChange:
    """Add `quantity` storage units back to an item (cancellation, restock)."""
    if quantity < 0:
        raise ValueError("restore quantity must be non-negative")
    quantity = round_quantity(quantity)

    def _op() -> StockChange:
        item = _load_fresh(item_id)
        before = item.qty
        after = round_quantity(before + quantity)
        item.qty = after
        db.session.commit()
        return StockChange(item_id=item_id, before=before, after=after, requested=quantity, applied=quantity)

    return persist(_op, action="restore inventory", details={"item_id": item_id})


def create_item(
    *,
    name: str,
    unit_type: str,
    qty: float = 0.0,
    cost_cents: int = 0,
    image_path: str | None = None,
) -> InventoryItem:
    if not name or not name.strip():
        raise ValueError("name is required")
    if qty < 0:
        raise ValueError("qty must be non-negative")
    if cost_cents < 0:
        raise ValueError("cost_cents must be non-negative")

    item = InventoryItem(
        name=name.strip(),
        unit_type=check_unit_type(unit_type),
        qty=round_quantity(qty),
        cost_cents=cost_cents,
        image_path=image_path,
    )

    def _op() -> InventoryItem:
        db.session.add(item)
        db.session.commit()
        return item

    return persist(_op, action="create inventory item")


def set_stock(item_id: int, qty: float) -> StockChange:
    """Restock edit: overwrite the on-hand quantity (storage units)."""
    if qty < 0:
        raise ValueError("qty must be non-negative")
    qty = round_quantity(qty)

    def _op() -> StockChange:
        item = _load_fresh(item_id)
        before = item.qty
        item.qty = qty
        db.session.commit()
        delta = round_quantity(abs(qty - before))
        return StockChange(item_id=item_id, before=before, after=qty, requested=delta, applied=delta)

    return persist(_op, action="update inventory", details={"item_id": item_id})


def list_items() -> list[InventoryItem]:
    return db.session.query(InventoryItem).order_by(InventoryItem.name, InventoryItem.id).all()
