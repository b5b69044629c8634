from __future__ import annotations
from datetime import datetime
from enum import Enum
from phonepos.time_utils import parse_iso_datetime

import re
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum amount: 9,999,999.99 (999,999,999 minor units)
MAX_PRICE_CENTS = 999_999_999

PHONE_PATTERN = re.compile(r"^09\d{7,9}$")

E = TypeVar("E", bound=Enum)


class ServiceError(ValueError):
    """Base for errors that map onto a client-facing HTTP status."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ServiceError):
    """400-level input problem."""


class NotFoundError(ServiceError):
    """404-level missing reference (product, sale, purchase, user...)."""

    status_code = 404


class ConflictError(ServiceError):
    """409-level business rule conflict (duplicate barcode, illegal transition)."""

    status_code = 409


class GuardError(ServiceError):
    """Invariant guard tripped before any mutation (last admin, received purchase)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()  # type: ignore[assignment]


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15") and decimals (e.g., "12.5")
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{key} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        return require_datetime(col.key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
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
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

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

        if k.endswith("_cents"):
            enforce_amount(k, val)

        patch[k] = val

    return patch


def enforce_amount(key: str, value: int | None) -> None:
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")


# -----------------------------------------------------------------------------
# Field helpers for request contracts
# -----------------------------------------------------------------------------


def require_int(key: str, value: Any, *, minimum: int | None = None) -> int:
    if value is None or value == "":
        raise ValidationError(f"{key} is required")
    number = _coerce_int(key, value)
    if minimum is not None and number < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    return number


def optional_int(key: str, value: Any, *, minimum: int | None = None) -> int | None:
    if value is None or value == "":
        return None
    return require_int(key, value, minimum=minimum)


def require_cents(key: str, value: Any, *, default: int | None = None) -> int:
    if (value is None or value == "") and default is not None:
        return default
    amount = require_int(key, value)
    enforce_amount(key, amount)
    return amount


def optional_text(value: Any, *, max_length: int | None = None, key: str = "value") -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return text


def require_text(key: str, value: Any, *, max_length: int | None = None) -> str:
    text = optional_text(value, max_length=max_length, key=key)
    if text is None:
        raise ValidationError(f"{key} is required")
    return text


def require_enum(enum_cls: type[E], key: str, value: Any) -> E:
    if isinstance(value, enum_cls):
        return value
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{key} is required")
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {key} '{value}'. Must be one of: {allowed}")


def require_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        dt = parse_iso_datetime(str(value)) if value is not None else None
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    if dt is None:
        raise ValidationError(f"{key} is required")
    return dt


def optional_datetime(key: str, value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    return require_datetime(key, value)


def require_list(key: str, value: Any, *, allow_empty: bool = False) -> list:
    if value is None:
        value = []
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list")
    if not value and not allow_empty:
        raise ValidationError(f"{key} must not be empty")
    for entry in value:
        if not isinstance(entry, dict):
            raise ValidationError(f"{key} entries must be objects")
    return value


def normalize_phone(raw: Any) -> str:
    """
    Normalize a Myanmar mobile number to the local 09... form.

    Accepts +959..., 959..., 9..., and bare subscriber numbers.
    """
    digits = re.sub(r"\D", "", str(raw or ""))
    if digits.startswith("959"):
        digits = "0" + digits[2:]
    elif digits.startswith("9") and len(digits) >= 7:
        digits = "0" + digits
    elif 7 <= len(digits) <= 9 and not digits.startswith("09"):
        digits = "09" + digits
    return digits


def require_phone(key: str, value: Any) -> str:
    phone = normalize_phone(value)
    if not PHONE_PATTERN.match(phone):
        raise ValidationError(f"{key} must be a valid phone number (09xxxxxxxxx)")
    return phone
