# Overview: Session-scoped cart; ordered product-keyed lines with merge-on-add.

from __future__ import annotations

from dataclasses import dataclass

from ..models import FinishedProduct


class CartError(ValueError):
    """Invalid cart edit (bad quantity, unknown line)."""


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise CartError("quantity must be a whole number")
    if quantity < 1:
        raise CartError("quantity must be at least 1")
    return quantity


@dataclass
class CartLine:
    product_id: int
    product_name: str
    unit_price_cents: int
    quantity: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }


class Cart:
    """
    One line per product, in the order products were first added.

    Prices here are for display only; checkout re-reads products at commit.
    """

    def __init__(self):
        self._lines: dict[int, CartLine] = {}

    def add(self, product: FinishedProduct, quantity: int = 1) -> CartLine:
        """Add a product; re-adding merges into the existing line."""
        quantity = _check_quantity(quantity)
        line = self._lines.get(product.id)
        if line is not None:
            line.quantity += quantity
            return line

        line = CartLine(
            product_id=product.id,
            product_name=product.name,
            unit_price_cents=product.selling_price_cents,
            quantity=quantity,
        )
        self._lines[product.id] = line
        return line

    def set_quantity(self, product_id: int, quantity: int) -> CartLine:
        quantity = _check_quantity(quantity)
        line = self._lines.get(product_id)
        if line is None:
            raise CartError(f"Product {product_id} is not in the cart")
        line.quantity = quantity
        return line

    def remove(self, product_id: int) -> None:
        if self._lines.pop(product_id, None) is None:
            raise CartError(f"Product {product_id} is not in the cart")

    def clear(self) -> None:
        self._lines.clear()

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    @property
    def total_cents(self) -> int:
        return sum(line.line_total_cents for line in self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self):
        return iter(self.lines)

    def __contains__(self, product_id) -> bool:
        return product_id in self._lines

    def to_dict(self) -> dict:
        return {
            "lines": [line.to_dict() for line in self._lines.values()],
            "item_count": self.item_count,
            "total_cents": self.total_cents,
        }
