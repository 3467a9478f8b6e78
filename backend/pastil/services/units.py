# Overview: Unit conversion between inventory storage units and recipe/display units.

"""
Unit conversion

Inventory quantities and costs are persisted in STORAGE units (kilograms,
liters, pieces). Recipe lines and UI entry use the finer DISPLAY units
(grams, milliliters, pieces).

    weight:  display = storage * 1000   (kg -> g)
    volume:  display = storage * 1000   (L  -> ml)
    piece:   display = storage          (pcs)

to_storage(to_display(x, k), k) == x for every finite non-negative x, up to
float rounding. Money is rounded to whole cents by round_cents(). Stored
quantities are rounded to QUANTITY_PLACES decimals by round_quantity() on
every write, so a deduction followed by the matching restore lands back on
the original value (0.9 - 0.2 + 0.2 == 0.9).

An unknown unit type is a programming error and raises immediately.
"""

from __future__ import annotations

import math

PIECE = "piece"
WEIGHT = "weight"
VOLUME = "volume"

UNIT_TYPES = (PIECE, WEIGHT, VOLUME)

# 1 mg for weight, 0.001 ml for volume.
QUANTITY_PLACES = 6

_DISPLAY_PER_STORAGE = {
    PIECE: 1,
    WEIGHT: 1000,
    VOLUME: 1000,
}

# (storage label, display label)
_LABELS = {
    PIECE: ("pcs", "pcs"),
    WEIGHT: ("kg", "g"),
    VOLUME: ("L", "ml"),
}


class UnknownUnitError(ValueError):
    """Raised for a unit type outside UNIT_TYPES."""


def check_unit_type(unit_type: str) -> str:
    if unit_type not in _DISPLAY_PER_STORAGE:
        raise UnknownUnitError(
            f"Unknown unit type {unit_type!r}; expected one of {', '.join(UNIT_TYPES)}"
        )
    return unit_type


def to_display(quantity: float, unit_type: str) -> float:
    """Storage-unit quantity -> display-unit quantity."""
    return quantity * _DISPLAY_PER_STORAGE[check_unit_type(unit_type)]


def to_storage(quantity: float, unit_type: str) -> float:
    """Display-unit quantity -> storage-unit quantity."""
    factor = _DISPLAY_PER_STORAGE[check_unit_type(unit_type)]
    if factor == 1:
        return quantity
    return quantity / factor


def unit_labels(unit_type: str) -> tuple[str, str]:
    return _LABELS[check_unit_type(unit_type)]


def round_cents(value: float) -> int:
    """Nearest-cent rounding (half-up) for currency-derived values."""
    if value < 0:
        return -round_cents(-value)
    return int(math.floor(value + 0.5))


def round_quantity(value: float) -> float:
    """Storage quantity at stored precision; -0.0 becomes 0.0."""
    return round(value, QUANTITY_PLACES) + 0.0

