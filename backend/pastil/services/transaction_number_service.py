# Overview: Human-readable, period-scoped transaction numbers for checkouts.

"""
Transaction Numbers

FORMAT: "<period>-<sequence>", period = "YY-MM", sequence zero-padded
(default width 5), e.g. "24-05-00012". The sequence restarts at 1 for each
new period.

ALLOCATION: the next number is the highest sequence already written on a
Sale row for that exact period, plus one. Sequences are compared as
integers, so rows written under a different pad width (or past 99999)
still order correctly.

KNOWN LIMITATION: read-then-issue is NOT atomic. Two checkouts that both
read before either writes its Sale rows receive the same number. Nothing
is reserved by calling next_transaction_number(); the number only becomes
"taken" once a Sale row carrying it is committed. Fixing this requires an
atomic counter in the backing store (e.g. a locked sequence row).
"""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale
from pastil.time_utils import current_period
from .concurrency import PersistenceError

DEFAULT_PAD = 5

_PERIOD_RE = re.compile(r"^\d{2}-\d{2}$")


def validate_period(period: str) -> str:
    if not isinstance(period, str) or not _PERIOD_RE.match(period):
        raise ValueError(f"period must look like 'YY-MM', got {period!r}")
    return period


def format_transaction_number(period: str, sequence: int, pad: int = DEFAULT_PAD) -> str:
    return f"{period}-{sequence:0{pad}d}"


def parse_sequence(transaction_number: str | None) -> int:
    """Trailing sequence of a transaction number; 0 when absent or malformed."""
    if not transaction_number:
        return 0
    try:
        return int(transaction_number.rsplit("-", 1)[1])
    except (IndexError, ValueError):
        return 0


def latest_transaction_number(period: str) -> str | None:
    """Number with the highest sequence issued for the period, None if none."""
    validate_period(period)
    try:
        issued = (
            db.session.query(Sale.transaction_number)
            .filter(Sale.transaction_number.like(f"{period}-%"))
            .distinct()
            .all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(
            "Failed to read latest transaction number",
            details={"period": period, "cause": str(exc)},
        ) from exc
    return max((number for (number,) in issued), key=parse_sequence, default=None)


def next_transaction_number(period: str | None = None, *, pad: int | None = None) -> str:
    """Next number for `period` (defaults to the current UTC month)."""
    period = validate_period(period or current_period())
    if pad is None:
        pad = current_app.config.get("TRANSACTION_NUMBER_PAD", DEFAULT_PAD)

    sequence = parse_sequence(latest_transaction_number(period)) + 1
    return format_transaction_number(period, sequence, pad)
