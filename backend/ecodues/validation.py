from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from ecodues.time_utils import parse_iso_date


# Upper bound for any single monetary amount (9,999,999,999.99).
# Matches Numeric(12, 2) and prevents overflow on strict backends.
MAX_AMOUNT = Decimal("9999999999.99")

CENTS = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(ValueError):
    """404-level: a referenced row does not exist."""


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer for JSON bodies:
    - fields: allowed keys mapped to their kind ("int", "decimal", "string", "date", "list")
    - required: keys that must be present
    """
    fields: dict[str, str]
    required: frozenset[str] = frozenset()


def as_money(value: Decimal | int | str) -> Decimal:
    """Quantize to 2 decimal places, half-up (fixed-point storage format)."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_decimal(key: str, value: Any) -> Decimal:
    """
    Accept Decimal, int, float or numeric string; return Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{key} must be a number")
    else:
        raise ValidationError(f"{key} must be a number")

    if not result.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    return result


def _coerce_value(key: str, kind: str, value: Any):
    if value is None:
        return None
    if kind == "int":
        return coerce_int(key, value)
    if kind == "decimal":
        return coerce_decimal(key, value)
    if kind == "date":
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be an ISO-8601 date")
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{key} must be an ISO-8601 date")
    if kind == "list":
        if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
            raise ValidationError(f"{key} must be a list of objects")
        return value
    # Strings / Text
    return str(value).strip()


def validate_payload(*, payload: dict, policy: PayloadPolicy) -> dict:
    """
    Validates + normalizes incoming JSON against a PayloadPolicy.
    Returns a cleaned dict containing only allowed fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = sorted(f for f in policy.required if payload.get(f) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for k in payload.keys():
        if k not in policy.fields:
            raise ValidationError(f"Field not allowed: {k}")

    return {k: _coerce_value(k, policy.fields[k], raw) for k, raw in payload.items()}


# =============================================================================
# BUSINESS RULES (checked by services before any write)
# =============================================================================

def require_quantity(key: str, value: Any, *, allow_zero: bool = False) -> int:
    qty = coerce_int(key, value)
    if qty < 0 or (qty == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    return qty


def require_positive_amount(key: str, value: Any) -> Decimal:
    amount = coerce_decimal(key, value)
    if amount <= 0:
        raise ValidationError(f"{key} must be > 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
    return as_money(amount)


def require_non_negative_amount(key: str, value: Any) -> Decimal:
    amount = coerce_decimal(key, value)
    if amount < 0:
        raise ValidationError(f"{key} must be >= 0")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}")
    return as_money(amount)


def require_non_negative_rate(key: str, value: Any) -> Decimal:
    """Like require_non_negative_amount but keeps sub-cent precision (per-gram rates)."""
    rate = coerce_decimal(key, value)
    if rate < 0:
        raise ValidationError(f"{key} must be >= 0")
    return rate
