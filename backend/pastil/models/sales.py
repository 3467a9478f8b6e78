from __future__ import annotations

from sqlalchemy import event, inspect

from ..extensions import db
from pastil.time_utils import to_utc_z


DINE_IN = "dine_in"
TAKEOUT = "takeout"
SEATING_MODES = (DINE_IN, TAKEOUT)

# The only columns a written sale row may change (cancellation path).
MUTABLE_SALE_FIELDS = frozenset({"cancelled", "cancelled_at", "version_id"})


class SaleImmutableError(Exception):
    """Raised when a persisted sale row is modified outside the cancellation fields."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class Sale(db.Model):
    """
    One row per (transaction, product).

    WHY: A checkout of N cart lines writes N rows sharing transaction_id and
    transaction_number. Name, cost and price are snapshots taken at commit so
    reports stay correct after recipe or price edits.

    IMMUTABLE: once written, only cancelled/cancelled_at may change, and a
    cancelled row cannot be un-cancelled (enforced by a before_update hook).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_transaction_id", "transaction_id"),
        db.Index("ix_sales_transaction_number", "transaction_number"),
        db.Index("ix_sales_created_at", "created_at"),
        db.Index("ix_sales_earnings_datetime", "earnings_datetime"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Groups the rows of a multi-item checkout
    transaction_id = db.Column(db.String(36), nullable=False)

    # Human-readable, period scoped (e.g. "24-05-00012")
    transaction_number = db.Column(db.String(32), nullable=False)

    # Product snapshot (product may be deleted later)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("finished_products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    product_name = db.Column(db.String(255), nullable=False)
    qty = db.Column(db.Integer, nullable=False)
    unit_type = db.Column(db.String(16), nullable=False, default="piece")

    # All amounts in cents
    cost_cents = db.Column(db.Integer, nullable=False)
    selling_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    customer_payment_cents = db.Column(db.Integer, nullable=True)

    payment_method = db.Column(db.String(64), nullable=False)
    customer_type = db.Column(db.String(64), nullable=False)
    dine_in_takeout = db.Column(db.String(16), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    earnings_datetime = db.Column(db.DateTime(timezone=True), nullable=True)

    cancelled = db.Column(db.Boolean, nullable=False, default=False, index=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Sale id={self.id} transaction_number={self.transaction_number!r} "
            f"product_name={self.product_name!r} qty={self.qty} cancelled={self.cancelled}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "transaction_number": self.transaction_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "qty": self.qty,
            "unit_type": self.unit_type,
            "cost_cents": self.cost_cents,
            "selling_price_cents": self.selling_price_cents,
            "total_cents": self.total_cents,
            "customer_payment_cents": self.customer_payment_cents,
            "payment_method": self.payment_method,
            "customer_type": self.customer_type,
            "dine_in_takeout": self.dine_in_takeout,
            "created_at": to_utc_z(self.created_at),
            "earnings_datetime": to_utc_z(self.earnings_datetime),
            "cancelled": self.cancelled,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
        }


@event.listens_for(Sale, "before_update")
def _guard_sale_immutability(mapper, connection, target: Sale) -> None:
    state = inspect(target)

    changed = sorted(
        attr.key
        for attr in state.mapper.column_attrs
        if attr.key not in MUTABLE_SALE_FIELDS and state.attrs[attr.key].history.has_changes()
    )
    if changed:
        raise SaleImmutableError(
            "Sale rows are immutable except for cancellation",
            details={"sale_id": target.id, "fields": changed},
        )

    # Rows are written uncancelled, so any change back to False is a reinstatement.
    if state.attrs["cancelled"].history.has_changes() and not target.cancelled:
        raise SaleImmutableError(
            "A cancelled sale cannot be reinstated",
            details={"sale_id": target.id},
        )


class PaymentMethod(db.Model):
    """Selectable payment method (e.g. Cash, GCash)."""
    __tablename__ = "payment_methods"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    color = db.Column(db.String(16), nullable=False, default="#64748b")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}


class CustomerType(db.Model):
    """Selectable customer category (e.g. Walk-in, Student)."""
    __tablename__ = "customer_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    color = db.Column(db.String(16), nullable=False, default="#64748b")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "color": self.color}
