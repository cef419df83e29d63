"""Validation boundary turning loose user payloads into typed records.

Numeric fields are forgiving: anything that is not a finite number becomes
zero. Structural problems (a debt that is not an object, an unknown strategy,
a malformed start month) raise :class:`ValidationError` instead.
"""

from __future__ import annotations

import re
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping

from .debts import (
    DEFAULT_HORIZON_MONTHS,
    MAX_HORIZON_MONTHS,
    ZERO,
    Debt,
    PlanSettings,
    Strategy,
    current_month,
    round2,
)

_MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


class ValidationError(ValueError):
    """Raised when a payload cannot be turned into a typed record."""

    def __init__(self, errors: Dict[str, List[str]]):
        self.errors = errors
        summary = "; ".join(
            f"{field}: {message}" for field, messages in errors.items() for message in messages
        )
        super().__init__(summary or "Invalid input")


def to_number(value: Any, fallback: Decimal = ZERO) -> Decimal:
    """Coerce ``value`` to a finite ``Decimal`` or return ``fallback``."""

    if value is None:
        return fallback
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return ZERO
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return fallback
    return number if number.is_finite() else fallback


def _pick(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return default


def new_debt_id() -> str:
    return f"d-{uuid.uuid4()}"


def normalize_month(value: Any, *, today: date | None = None) -> str:
    """Validate a ``YYYY-MM`` label; a missing value means the current month."""

    if value is None or value == "":
        return current_month(today)
    match = _MONTH_PATTERN.match(str(value).strip())
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise ValidationError({"startMonth": ["Use the YYYY-MM format."]})
    return match.group(0)


def normalize_debt(raw: Any) -> Debt:
    """Build a :class:`Debt` from a wire mapping (camelCase or snake_case keys)."""

    if not isinstance(raw, Mapping):
        raise ValidationError({"debt": ["Each debt must be an object."]})

    due_day = to_number(_pick(raw, "dueDay", "due_day"), Decimal(1))
    return Debt(
        id=str(raw.get("id") or new_debt_id()),
        name=str(raw.get("name") or ""),
        balance=round2(max(to_number(raw.get("balance")), ZERO)),
        apr=max(to_number(raw.get("apr")), ZERO),
        minimum_payment=round2(
            max(to_number(_pick(raw, "minPayment", "minimum_payment")), ZERO)
        ),
        due_day=int(min(max(due_day, Decimal(1)), Decimal(31))),
        notes=str(raw.get("notes") or ""),
    )


def normalize_strategy(value: Any) -> Strategy:
    if value is None or value == "":
        return Strategy.AVALANCHE
    try:
        return Strategy(str(value).strip().lower())
    except ValueError:
        raise ValidationError({"strategy": ["Choose avalanche or snowball."]}) from None


def normalize_settings(
    raw: Any,
    *,
    today: date | None = None,
    default_horizon: int = DEFAULT_HORIZON_MONTHS,
    default_currency: str = "EUR",
) -> PlanSettings:
    """Build :class:`PlanSettings` from a wire mapping."""

    if not isinstance(raw, Mapping):
        raise ValidationError({"settings": ["Settings must be an object."]})

    horizon = to_number(_pick(raw, "horizonMonths", "horizon_months"), Decimal(default_horizon))
    if horizon < 1:
        horizon = Decimal(default_horizon)
    return PlanSettings(
        strategy=normalize_strategy(raw.get("strategy")),
        extra_monthly=round2(max(to_number(_pick(raw, "extraMonthly", "extra_monthly")), ZERO)),
        start_month=normalize_month(_pick(raw, "startMonth", "start_month"), today=today),
        horizon_months=int(min(horizon, Decimal(MAX_HORIZON_MONTHS))),
        currency=str(raw.get("currency") or default_currency),
    )


def _number_out(value: Decimal) -> float | int:
    return int(value) if value == value.to_integral_value() else float(value)


def debt_to_record(debt: Debt) -> dict[str, Any]:
    """Serialize a debt with the wire (camelCase) field names."""

    return {
        "id": debt.id,
        "name": debt.name,
        "balance": _number_out(debt.balance),
        "apr": _number_out(debt.apr),
        "minPayment": _number_out(debt.minimum_payment),
        "dueDay": debt.due_day,
        "notes": debt.notes,
    }


def settings_to_record(settings: PlanSettings) -> dict[str, Any]:
    return {
        "currency": settings.currency,
        "strategy": settings.strategy.value,
        "extraMonthly": _number_out(settings.extra_monthly),
        "startMonth": settings.start_month,
        "horizonMonths": settings.horizon_months,
    }


__all__ = [
    "ValidationError",
    "debt_to_record",
    "new_debt_id",
    "normalize_debt",
    "normalize_month",
    "normalize_settings",
    "normalize_strategy",
    "settings_to_record",
    "to_number",
]
