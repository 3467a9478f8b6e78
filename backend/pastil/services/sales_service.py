"""
Sales Service - Sale row persistence

WHY: Sale rows are the audit trail that reports and archives read. They are
written once per (transaction, product) and afterwards only the cancellation
fields may change (enforced on the model).
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Sale
from .concurrency import persist


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def record_sales(rows: list[Sale]) -> list[Sale]:
    """
    Insert all rows of one transaction in a single commit.

    On failure nothing is written and PersistenceError is raised.
    """
    if not rows:
        raise SaleError("Cannot record a transaction with no sale rows")

    transaction_ids = {row.transaction_id for row in rows}
    if len(transaction_ids) != 1:
        raise SaleError("All sale rows must share one transaction_id")

    def _op() -> list[Sale]:
        db.session.add_all(rows)
        db.session.commit()
        return rows

    return persist(
        _op,
        action="record sale",
        details={"transaction_id": rows[0].transaction_id},
        attempts=1,
    )


def get_transaction_sales(transaction_id: str) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter_by(transaction_id=transaction_id)
        .order_by(Sale.id)
        .all()
    )


def mark_transaction_cancelled(transaction_id: str, cancelled_at: datetime) -> list[Sale]:
    """
    Void every row of a transaction in one commit.

    Rows already cancelled keep their original cancelled_at.
    """
    def _op() -> list[Sale]:
        rows = (
            db.session.query(Sale)
            .filter_by(transaction_id=transaction_id)
            .order_by(Sale.id)
            .populate_existing()
            .all()
        )
        if not rows:
            raise SaleError("Sale transaction not found", details={"transaction_id": transaction_id})

        for row in rows:
            if row.cancelled:
                continue
            row.cancelled = True
            row.cancelled_at = cancelled_at
        db.session.commit()
        return rows

    return persist(_op, action="cancel sale", details={"transaction_id": transaction_id})


def list_recent_sales(limit: int = 50, include_cancelled: bool = True) -> list[Sale]:
    q = db.session.query(Sale)
    if not include_cancelled:
        q = q.filter(Sale.cancelled.is_(False))
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
