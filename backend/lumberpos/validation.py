from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from lumberpos.money import MAX_PRICE, MAX_QUANTITY, to_money

_INT_RE = re.compile(r"-?[0-9]+")


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate barcode, insufficient stock)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level: a referenced product, sale or customer does not exist."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def error_body(exc: Exception) -> dict:
    body = {"error": str(exc)}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    return body


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_decimal(key: str, value: Any, places: int) -> Decimal:
    """
    Accept JSON numbers or numeric strings; reject booleans, NaN/Infinity
    and values with more fractional digits than the column stores.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float)):
        raw = str(value)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            raise ValidationError(f"{key} must be a number")
    elif isinstance(value, Decimal):
        raw = str(value)
    else:
        raise ValidationError(f"{key} must be a number")

    try:
        dec = Decimal(raw)
    except InvalidOperation:
        raise ValidationError(f"{key} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{key} must be a finite number")

    try:
        exact = dec == dec.quantize(Decimal(1).scaleb(-places))
    except InvalidOperation:
        raise ValidationError(f"{key} is out of range")
    if not exact:
        raise ValidationError(f"{key} allows at most {places} decimal places")

    return dec


def coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        # ASCII digits only; str.isdigit also accepts superscripts
        if _INT_RE.fullmatch(stripped):
            return int(stripped)
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Numeric before Integer: fixed-point money and quantities
    if isinstance(coltype, Numeric) and not isinstance(coltype, Integer):
        return coerce_decimal(col.key, value, coltype.scale or 0)

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length, Numeric scale)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # Empty optional strings are stored as NULL (keeps unique columns clean)
        if isinstance(raw, str) and raw.strip() == "" and col.nullable:
            raw = None

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("price", "cost"):
        value = patch.get(field)
        if value is None:
            continue
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value > MAX_PRICE:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")


def enforce_rules_stock_levels(patch: dict) -> None:
    for field in ("quantity", "min_stock", "max_stock"):
        value = patch.get(field)
        if value is not None and value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value is not None and value > MAX_QUANTITY:
            raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")


def enforce_choice(key: str, value: Any, choices: tuple[str, ...]) -> str:
    if value not in choices:
        raise ValidationError(
            f"{key} must be one of: {', '.join(choices)}",
            details={key: value},
        )
    return value


def parse_positive_quantity(key: str, value: Any) -> Decimal:
    """Stock quantities: > 0 with at most 3 decimal places."""
    if value is None:
        raise ValidationError(f"{key} is required")
    qty = coerce_decimal(key, value, 3)
    if qty <= 0:
        raise ValidationError(f"{key} must be greater than zero")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{key} cannot exceed {MAX_QUANTITY}")
    return qty


def parse_amount(key: str, value: Any) -> Decimal:
    """Discounts and taxes: >= 0, at most 2 decimal places, default 0."""
    if value is None:
        return to_money(0)
    amount = coerce_decimal(key, value, 2)
    if amount < 0:
        raise ValidationError(f"{key} must be >= 0")
    if amount > MAX_PRICE:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE}")
    return to_money(amount)


def parse_reason(value: Any) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError("reason is required")
    reason = value.strip()
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255")
    return reason


def parse_optional_id(key: str, value: Any) -> int | None:
    if value is None:
        return None
    parsed = coerce_int(key, value)
    if parsed < 1:
        raise ValidationError(f"{key} must be a positive integer")
    return parsed
