# Overview: Recipe resolution; derived product cost and stock availability from ingredient snapshots.

"""
Recipe Service

WHY: A finished product has no stock or cost of its own. Both are derived
from its recipe lines and the CURRENT inventory snapshot, so they are
recomputed on every call and never cached across an inventory change.

UNIT HAZARD: InventoryItem.cost_cents is per STORAGE unit (kg, L, pcs) while
RecipeLine.qty is in DISPLAY units (g, ml, pcs). Every cost computation goes
through to_storage(); skipping it is off by a factor of 1000.

The functions below are pure over the loaded objects (product.recipe_lines,
line.item). Only list_product_availability() touches the session.
"""

from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import FinishedProduct, RecipeLine
from .units import round_cents, to_display, to_storage, unit_labels


def line_cost(line: RecipeLine) -> float:
    """Unrounded cost in cents of one recipe line; 0 when the item is missing."""
    item = line.item
    if item is None:
        return 0.0
    return item.cost_cents * to_storage(line.qty, item.unit_type)


def product_cost_cents(product: FinishedProduct) -> int:
    """Sum of line costs, rounded once to whole cents."""
    return round_cents(sum(line_cost(line) for line in product.recipe_lines))


def profit_per_unit_cents(product: FinishedProduct) -> int:
    return product.selling_price_cents - product_cost_cents(product)


def missing_ingredients(product: FinishedProduct) -> list[dict]:
    """
    Recipe lines that block a single unit of the product.

    A line blocks when its item is gone or when the item's stock, converted
    to display units, is below the line quantity.
    """
    missing = []
    for line in product.recipe_lines:
        item = line.item
        if item is None:
            missing.append({
                "line_id": line.id,
                "item_id": line.item_id,
                "item_name": None,
                "required": line.qty,
                "available": 0,
                "unit": None,
            })
            continue

        available = to_display(item.qty, item.unit_type)
        if available < line.qty:
            missing.append({
                "line_id": line.id,
                "item_id": item.id,
                "item_name": item.name,
                "required": line.qty,
                "available": available,
                "unit": unit_labels(item.unit_type)[1],
            })
    return missing


def is_available(product: FinishedProduct) -> bool:
    """False with no recipe lines; otherwise True only if every line is covered."""
    if not product.recipe_lines:
        return False
    return not missing_ingredients(product)


def requirements(product: FinishedProduct, quantity: int = 1) -> dict[int, float]:
    """Display-unit amount needed per inventory item for `quantity` units of a product."""
    needed: dict[int, float] = {}
    for line in product.recipe_lines:
        needed[line.item_id] = needed.get(line.item_id, 0) + line.qty * quantity
    return needed


def load_products(product_ids=None) -> list[FinishedProduct]:
    """
    Load products with recipe lines and items, overwriting any identity-map
    state so callers always see the current rows.
    """
    q = (
        db.session.query(FinishedProduct)
        .options(selectinload(FinishedProduct.recipe_lines).selectinload(RecipeLine.item))
        .populate_existing()
    )
    if product_ids is not None:
        q = q.filter(FinishedProduct.id.in_(list(product_ids)))
    return q.order_by(FinishedProduct.name, FinishedProduct.id).all()


def describe_product(product: FinishedProduct) -> dict:
    missing = missing_ingredients(product)
    return {
        **product.to_dict(),
        "cost_cents": product_cost_cents(product),
        "profit_per_unit_cents": profit_per_unit_cents(product),
        "ingredient_count": len(product.recipe_lines),
        "available": bool(product.recipe_lines) and not missing,
        "missing_ingredients": missing,
    }


def list_product_availability() -> list[dict]:
    return [describe_product(p) for p in load_products()]
