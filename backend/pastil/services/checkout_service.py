"""
Checkout Service - cart commit with ingredient deduction

WHY: A sale of finished products must record the sale AND consume the raw
materials its recipes name, in the units those materials are stocked in.

STATE MACHINE (one CheckoutCommitter per attempt):
    IDLE -> VALIDATING -> REJECTED                        nothing written
    IDLE -> VALIDATING -> PERSISTING -> FAILED            sale write failed, nothing written
    IDLE -> VALIDATING -> PERSISTING -> COMMITTED
    IDLE -> VALIDATING -> PERSISTING -> PARTIALLY_FAILED  sales written, some deductions failed

ORDER within one checkout:
    1. re-validate against freshly loaded products/stock (never trust the cart)
    2. issue transaction number
    3. write every Sale row of the transaction in ONE commit
    4. deduct each touched inventory item in its own commit
    5. register with the cancellation window (emits SaleCommitted)

AGGREGATION: requirements are summed per inventory item in DISPLAY units
across every cart line before a single conversion to storage units, so a
raw material shared by several products is deducted once.

NO ROLLBACK: a failed deduction does not undo the written sale rows or the
deductions already applied. It is reported per item on the result
(PARTIALLY_FAILED) for the caller to surface; nothing is retried beyond the
optimistic-lock retry inside inventory_service.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..models import Sale
from ..models.sales import SEATING_MODES
from pastil.time_utils import current_period, to_utc_z, utcnow
from . import inventory_service, recipe_service, sales_service, transaction_number_service
from .cancellation_service import get_cancellation_window
from .cart import Cart, CartLine
from .concurrency import PersistenceError
from .units import round_quantity, to_display, to_storage, unit_labels

IDLE = "IDLE"
VALIDATING = "VALIDATING"
PERSISTING = "PERSISTING"
COMMITTED = "COMMITTED"
PARTIALLY_FAILED = "PARTIALLY_FAILED"
REJECTED = "REJECTED"
FAILED = "FAILED"


class CheckoutError(Exception):
    """Raised for checkout operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CheckoutValidationError(CheckoutError):
    """Cart or selections rejected before anything was written."""


@dataclass(frozen=True)
class ItemRequirement:
    item_id: int
    item_name: str
    unit_type: str
    display_qty: float

    @property
    def storage_qty(self) -> float:
        return round_quantity(to_storage(self.display_qty, self.unit_type))


@dataclass(frozen=True)
class ItemDeduction:
    item_id: int
    item_name: str
    unit_type: str
    display_qty: float
    storage_qty: float
    applied_storage_qty: float = 0.0
    clamped: bool = False
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        storage_label, display_label = unit_labels(self.unit_type)
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "unit_type": self.unit_type,
            "display_qty": self.display_qty,
            "display_unit": display_label,
            "storage_qty": self.storage_qty,
            "storage_unit": storage_label,
            "applied_storage_qty": self.applied_storage_qty,
            "clamped": self.clamped,
            "error": self.error,
        }


@dataclass
class CheckoutResult:
    state: str
    transaction_id: str
    transaction_number: str
    sales: list[Sale]
    deductions: list[ItemDeduction]
    total_cents: int
    change_cents: int | None
    committed_at: datetime
    expires_at: datetime | None = None

    @property
    def representative_sale(self) -> Sale:
        return self.sales[0]

    @property
    def is_partial(self) -> bool:
        return self.state == PARTIALLY_FAILED

    @property
    def failed_items(self) -> list[ItemDeduction]:
        return [d for d in self.deductions if d.failed]

    @property
    def shortfalls(self) -> list[ItemDeduction]:
        return [d for d in self.deductions if d.clamped]

    @property
    def quantity(self) -> int:
        return sum(sale.qty for sale in self.sales)

    @property
    def product_summary(self) -> str:
        first = self.sales[0].product_name
        others = len(self.sales) - 1
        return first if not others else f"{first} +{others} more"

    def applied_deductions(self) -> dict[int, float]:
        """Storage-unit amount actually removed per item (what a cancellation restores)."""
        return {
            d.item_id: d.applied_storage_qty
            for d in self.deductions
            if not d.failed and d.applied_storage_qty > 0
        }

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "sales": [sale.to_dict() for sale in self.sales],
            "deductions": [d.to_dict() for d in self.deductions],
            "failed_items": [d.to_dict() for d in self.failed_items],
            "shortfalls": [d.to_dict() for d in self.shortfalls],
            "total_cents": self.total_cents,
            "change_cents": self.change_cents,
            "committed_at": to_utc_z(self.committed_at),
            "expires_at": to_utc_z(self.expires_at),
        }


@dataclass
class _CheckoutPlan:
    lines: list[CartLine]
    payment_method: str
    customer_type: str
    dine_in_takeout: str
    products: dict
    requirements: list[ItemRequirement] = field(default_factory=list)
    total_cents: int = 0
    change_cents: int | None = None


def _require_selection(value, field_name: str, message: str) -> str:
    if value is None or not str(value).strip():
        raise CheckoutValidationError(message, details={"field": field_name})
    return str(value).strip()


class CheckoutCommitter:
    """
    Runs a single checkout attempt through the state machine above.

    window: CancellationWindow to register the committed transaction with
    (None skips registration and the SaleCommitted event).
    clock: returns the commit time; also picks the transaction-number period.
    """

    def __init__(self, *, window=None, clock=utcnow, logger=None):
        self.window = window
        self.clock = clock
        self._logger = logger
        self.state = IDLE

    @property
    def logger(self):
        return self._logger or current_app.logger

    def _transition(self, state: str) -> None:
        self.logger.debug("checkout %s -> %s", self.state, state)
        self.state = state

    def commit(
        self,
        cart: Cart,
        *,
        payment_method: str | None,
        customer_type: str | None,
        dine_in_takeout: str | None,
        customer_payment_cents: int | None = None,
    ) -> CheckoutResult:
        if self.state != IDLE:
            raise CheckoutError("Checkout attempt already used", details={"state": self.state})

        self._transition(VALIDATING)
        try:
            plan = self._validate(cart, payment_method, customer_type, dine_in_takeout, customer_payment_cents)
        except CheckoutValidationError:
            self._transition(REJECTED)
            raise

        self._transition(PERSISTING)
        now = self.clock()
        transaction_id = str(uuid.uuid4())

        try:
            transaction_number = transaction_number_service.next_transaction_number(current_period(now))
            rows = [
                self._build_sale(
                    plan.products[line.product_id],
                    line,
                    transaction_id=transaction_id,
                    transaction_number=transaction_number,
                    payment_method=plan.payment_method,
                    customer_type=plan.customer_type,
                    dine_in_takeout=plan.dine_in_takeout,
                    customer_payment_cents=customer_payment_cents,
                    now=now,
                )
                for line in plan.lines
            ]
            sales_service.record_sales(rows)
        except PersistenceError:
            self._transition(FAILED)
            self.logger.exception("Checkout aborted: sale rows were not written")
            raise

        deductions = [self._deduct(req, transaction_number) for req in plan.requirements]

        failed = [d for d in deductions if d.failed]
        self._transition(PARTIALLY_FAILED if failed else COMMITTED)
        if failed:
            self.logger.warning(
                "Partial commit %s: sale recorded but stock not deducted for items %s",
                transaction_number,
                [d.item_id for d in failed],
            )

        result = CheckoutResult(
            state=self.state,
            transaction_id=transaction_id,
            transaction_number=transaction_number,
            sales=rows,
            deductions=deductions,
            total_cents=plan.total_cents,
            change_cents=plan.change_cents,
            committed_at=now,
        )

        if self.window is not None:
            pending = self.window.register(result)
            result.expires_at = pending.expires_at

        return result

    def _validate(self, cart: Cart, payment_method, customer_type, dine_in_takeout,
                  customer_payment_cents) -> _CheckoutPlan:
        lines = list(cart)
        if not lines:
            raise CheckoutValidationError("Cart is empty", details={"field": "cart"})

        payment_method = _require_selection(payment_method, "payment_method", "Select a payment method")
        customer_type = _require_selection(customer_type, "customer_type", "Select a customer type")

        if dine_in_takeout not in SEATING_MODES:
            raise CheckoutValidationError(
                "Select dine in or takeout",
                details={"field": "dine_in_takeout", "allowed": list(SEATING_MODES)},
            )

        for line in lines:
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
                raise CheckoutValidationError(
                    "Quantity must be a whole number of at least 1",
                    details={"product_id": line.product_id, "quantity": line.quantity},
                )

        # Stock or recipes may have changed since the cart was built.
        products = {p.id: p for p in recipe_service.load_products([line.product_id for line in lines])}

        gone = [line.product_id for line in lines if line.product_id not in products]
        if gone:
            raise CheckoutValidationError("Product no longer exists", details={"product_ids": gone})

        unavailable = [
            {
                "product_id": line.product_id,
                "product_name": products[line.product_id].name,
                "missing_ingredients": recipe_service.missing_ingredients(products[line.product_id]),
            }
            for line in lines
            if not recipe_service.is_available(products[line.product_id])
        ]
        if unavailable:
            raise CheckoutValidationError("Product is unavailable", details={"products": unavailable})

        needed: dict[int, float] = {}
        items = {}
        for line in lines:
            product = products[line.product_id]
            for item_id, display_qty in recipe_service.requirements(product, line.quantity).items():
                needed[item_id] = needed.get(item_id, 0) + display_qty
            items.update((recipe_line.item_id, recipe_line.item) for recipe_line in product.recipe_lines)

        insufficient = []
        for item_id, display_qty in needed.items():
            item = items[item_id]
            on_hand = to_display(item.qty, item.unit_type)
            if on_hand < display_qty:
                insufficient.append({
                    "item_id": item_id,
                    "item_name": item.name,
                    "requested": display_qty,
                    "on_hand": on_hand,
                    "unit": unit_labels(item.unit_type)[1],
                })
        if insufficient:
            raise CheckoutValidationError(
                "Insufficient inventory to complete checkout",
                details={"items": insufficient},
            )

        total_cents = sum(products[line.product_id].selling_price_cents * line.quantity for line in lines)

        change_cents = None
        if customer_payment_cents is not None:
            if isinstance(customer_payment_cents, bool) or not isinstance(customer_payment_cents, int):
                raise CheckoutValidationError(
                    "Customer payment must be an amount in cents",
                    details={"field": "customer_payment_cents"},
                )
            if customer_payment_cents < total_cents:
                raise CheckoutValidationError(
                    "Customer payment does not cover the total",
                    details={"total_cents": total_cents, "customer_payment_cents": customer_payment_cents},
                )
            change_cents = customer_payment_cents - total_cents

        requirements = [
            ItemRequirement(
                item_id=item_id,
                item_name=items[item_id].name,
                unit_type=items[item_id].unit_type,
                display_qty=needed[item_id],
            )
            for item_id in sorted(needed)
        ]

        return _CheckoutPlan(
            lines=lines,
            payment_method=payment_method,
            customer_type=customer_type,
            dine_in_takeout=dine_in_takeout,
            products=products,
            requirements=requirements,
            total_cents=total_cents,
            change_cents=change_cents,
        )

    @staticmethod
    def _build_sale(product, line: CartLine, *, transaction_id, transaction_number, payment_method,
                    customer_type, dine_in_takeout, customer_payment_cents, now) -> Sale:
        return Sale(
            transaction_id=transaction_id,
            transaction_number=transaction_number,
            product_id=product.id,
            product_name=product.name,
            qty=line.quantity,
            unit_type="piece",
            cost_cents=recipe_service.product_cost_cents(product),
            selling_price_cents=product.selling_price_cents,
            total_cents=product.selling_price_cents * line.quantity,
            customer_payment_cents=customer_payment_cents,
            payment_method=payment_method,
            customer_type=customer_type,
            dine_in_takeout=dine_in_takeout,
            created_at=now,
            earnings_datetime=now,
            cancelled=False,
        )

    def _deduct(self, req: ItemRequirement, transaction_number: str) -> ItemDeduction:
        storage_qty = req.storage_qty
        try:
            change = inventory_service.deduct_stock(req.item_id, storage_qty)
        except PersistenceError as exc:
            self.logger.warning(
                "Stock deduction failed for item %s (%s) in %s: %s",
                req.item_id, req.item_name, transaction_number, exc,
            )
            return ItemDeduction(
                item_id=req.item_id,
                item_name=req.item_name,
                unit_type=req.unit_type,
                display_qty=req.display_qty,
                storage_qty=storage_qty,
                error=str(exc),
            )

        if change.clamped:
            self.logger.warning(
                "Stock for item %s (%s) clamped at zero in %s: requested %s, removed %s",
                req.item_id, req.item_name, transaction_number, storage_qty, change.applied,
            )

        return ItemDeduction(
            item_id=req.item_id,
            item_name=req.item_name,
            unit_type=req.unit_type,
            display_qty=req.display_qty,
            storage_qty=storage_qty,
            applied_storage_qty=change.applied,
            clamped=change.clamped,
        )


def checkout(cart: Cart, **selections) -> CheckoutResult:
    """Commit a cart using the application's cancellation window."""
    return CheckoutCommitter(window=get_cancellation_window()).commit(cart, **selections)
