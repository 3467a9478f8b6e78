from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from ..services.units import PIECE, check_unit_type, unit_labels
from pastil.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Raw material held in stock.

    UNITS: qty and cost_cents are in STORAGE units (kg, L, pcs). Recipe lines
    reference items in DISPLAY units (g, ml, pcs); see services/units.py.

    Mutated only by restock edits, checkout deductions and cancellation
    restorations. qty never goes below zero.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("qty >= 0", name="ck_inventory_items_qty_nonnegative"),
        db.Index("ix_inventory_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # piece | weight | volume
    unit_type = db.Column(db.String(16), nullable=False, default=PIECE)

    # Storage units
    qty = db.Column(db.Float, nullable=False, default=0.0)

    # Cost per ONE storage unit, in cents
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    # Object-storage key; never interpreted by the checkout engine
    image_path = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @validates("unit_type")
    def _validate_unit_type(self, key, value):
        return check_unit_type(value)

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} qty={self.qty} unit_type={self.unit_type}>"

    def to_dict(self) -> dict:
        storage_label, display_label = unit_labels(self.unit_type)
        return {
            "id": self.id,
            "name": self.name,
            "unit_type": self.unit_type,
            "qty": self.qty,
            "storage_unit": storage_label,
            "display_unit": display_label,
            "cost_cents": self.cost_cents,
            "image_path": self.image_path,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class FinishedProduct(db.Model):
    """
    Sellable product composed of recipe lines.

    Cost is derived from the recipe (services/recipe_service.py) and never
    stored here. A product with no recipe lines is never available.
    """
    __tablename__ = "finished_products"
    __table_args__ = (
        db.Index("ix_finished_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    image_path = db.Column(db.String(512), nullable=True)

    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)
    opex_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    recipe_lines = db.relationship(
        "RecipeLine",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="RecipeLine.id",
    )

    def __repr__(self) -> str:
        return f"<FinishedProduct id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "image_path": self.image_path,
            "selling_price_cents": self.selling_price_cents,
            "opex_cost_cents": self.opex_cost_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RecipeLine(db.Model):
    """One ingredient of a finished product; qty is in DISPLAY units (g, ml, pcs)."""
    __tablename__ = "product_ingredients"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("finished_products.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    qty = db.Column(db.Float, nullable=False)

    product = db.relationship("FinishedProduct", back_populates="recipe_lines")
    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "item_id": self.item_id,
            "qty": self.qty,
        }
