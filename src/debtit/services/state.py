"""Application state: the debt list, plan settings and the shared profile.

State records are immutable; every edit returns a new :class:`AppState`.
:class:`StateStore` persists them as JSON documents under fixed keys and
silently falls back to the defaults when stored data is unreadable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Protocol

from ..logging_config import get_logger
from .debts import (
    DEFAULT_HORIZON_MONTHS,
    MAX_HORIZON_MONTHS,
    ZERO,
    Debt,
    PlanSettings,
    Strategy,
    current_month,
    order_debts,
    round2,
)
from .normalize import (
    ValidationError,
    debt_to_record,
    new_debt_id,
    normalize_debt,
    normalize_settings,
    settings_to_record,
)

logger = get_logger("services.state")

APP_ID = "debtit"
APP_VERSION = "v1"
STATE_KEY = f"toolstack.{APP_ID}.{APP_VERSION}"
PROFILE_KEY = "toolstack.profile.v1"


def _utc_iso(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


@dataclass(frozen=True, slots=True)
class Profile:
    """Shared profile record used on printed plans."""

    org: str = "ToolStack"
    user: str = ""
    language: str = "EN"
    logo: str = ""


@dataclass(frozen=True, slots=True)
class StateMeta:
    app_id: str = APP_ID
    version: str = APP_VERSION
    updated_at: str = field(default_factory=_utc_iso)


@dataclass(frozen=True, slots=True)
class AppState:
    """Everything the planner persists besides the profile."""

    settings: PlanSettings
    debts: tuple[Debt, ...] = ()
    meta: StateMeta = field(default_factory=StateMeta)


@dataclass(frozen=True, slots=True)
class Totals:
    total_balance: Decimal
    total_minimum: Decimal


class DocumentRepository(Protocol):
    """Persistence contract used by :class:`StateStore`."""

    def get(self, key: str) -> Any:  # pragma: no cover - interface
        ...

    def set(self, key: str, value: str) -> Any:  # pragma: no cover - interface
        ...


def default_profile() -> Profile:
    return Profile()


def default_state(
    today: date | None = None,
    *,
    currency: str = "EUR",
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> AppState:
    """Starter state: one example debt, avalanche, 50 extra per month."""

    return AppState(
        settings=PlanSettings(
            strategy=Strategy.AVALANCHE,
            extra_monthly=Decimal("50.00"),
            start_month=current_month(today),
            horizon_months=min(horizon_months, MAX_HORIZON_MONTHS),
            currency=currency,
        ),
        debts=(
            Debt(
                id=new_debt_id(),
                name="Example debt",
                balance=Decimal("500.00"),
                apr=Decimal("12.0"),
                minimum_payment=Decimal("25.00"),
                due_day=1,
            ),
        ),
    )


def touch(state: AppState, now: datetime | None = None) -> AppState:
    """Return ``state`` with a fresh ``updatedAt`` stamp."""

    return replace(state, meta=replace(state.meta, updated_at=_utc_iso(now)))


_WIRE_NAMES = {
    "extra_monthly": "extraMonthly",
    "start_month": "startMonth",
    "horizon_months": "horizonMonths",
    "minimum_payment": "minPayment",
    "due_day": "dueDay",
}


def _wire_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    return {_WIRE_NAMES.get(key, key): value for key, value in patch.items()}


def update_settings(state: AppState, /, **patch: Any) -> AppState:
    """Merge settings fields (wire or snake_case names) into the current settings."""

    merged = {**settings_to_record(state.settings), **_wire_patch(patch)}
    return touch(replace(state, settings=normalize_settings(merged)))


def add_debt(state: AppState, /, **fields: Any) -> AppState:
    """Append a debt; with no fields a blank placeholder is added."""

    record = {"id": new_debt_id(), "name": "", "balance": 0, "apr": 0, "minPayment": 0}
    record.update(_wire_patch(fields))
    debt = normalize_debt(record)
    if any(existing.id == debt.id for existing in state.debts):
        raise ValidationError({"id": [f"Debt {debt.id} already exists."]})
    return touch(replace(state, debts=state.debts + (debt,)))


def update_debt(state: AppState, debt_id: str, /, **patch: Any) -> AppState:
    """Apply ``patch`` to the debt with ``debt_id``; its id never changes."""

    debts = list(state.debts)
    for index, debt in enumerate(debts):
        if debt.id == debt_id:
            merged = {**debt_to_record(debt), **_wire_patch(patch), "id": debt_id}
            debts[index] = normalize_debt(merged)
            return touch(replace(state, debts=tuple(debts)))
    raise KeyError(debt_id)


def delete_debt(state: AppState, debt_id: str) -> AppState:
    remaining = tuple(debt for debt in state.debts if debt.id != debt_id)
    if len(remaining) == len(state.debts):
        raise KeyError(debt_id)
    return touch(replace(state, debts=remaining))


def state_totals(debts: Iterable[Debt]) -> Totals:
    """Current total balance and total of minimum payments."""

    debts = list(debts)
    return Totals(
        total_balance=round2(sum((max(d.balance, ZERO) for d in debts), ZERO)),
        total_minimum=round2(sum((max(d.minimum_payment, ZERO) for d in debts), ZERO)),
    )


def ordered_debts(state: AppState) -> list[Debt]:
    """All debts (settled included) in the current priority order."""

    return order_debts(state.debts, state.settings.strategy)


def profile_to_record(profile: Profile) -> dict[str, str]:
    return {
        "org": profile.org,
        "user": profile.user,
        "language": profile.language,
        "logo": profile.logo,
    }


def profile_from_record(raw: Any) -> Profile:
    if not isinstance(raw, Mapping):
        raise ValidationError({"profile": ["Profile must be an object."]})
    defaults = default_profile()
    return Profile(
        org=str(raw.get("org") or defaults.org),
        user=str(raw.get("user") or ""),
        language=str(raw.get("language") or defaults.language),
        logo=str(raw.get("logo") or ""),
    )


def state_to_record(state: AppState) -> dict[str, Any]:
    return {
        "meta": {
            "appId": state.meta.app_id,
            "version": state.meta.version,
            "updatedAt": state.meta.updated_at,
        },
        "settings": settings_to_record(state.settings),
        "debts": [debt_to_record(debt) for debt in state.debts],
    }


def normalize_state(
    raw: Any,
    *,
    today: date | None = None,
    default_horizon: int = DEFAULT_HORIZON_MONTHS,
) -> AppState:
    """Build an :class:`AppState`; requires a settings object and a debts list."""

    if not isinstance(raw, Mapping):
        raise ValidationError({"state": ["State must be an object."]})
    errors: dict[str, list[str]] = {}
    if not isinstance(raw.get("settings"), Mapping):
        errors.setdefault("settings", []).append("Missing settings object.")
    if not isinstance(raw.get("debts"), list):
        errors.setdefault("debts", []).append("Missing debts list.")
    if errors:
        raise ValidationError(errors)

    meta_raw = raw.get("meta") if isinstance(raw.get("meta"), Mapping) else {}
    meta = StateMeta(
        app_id=str(meta_raw.get("appId") or APP_ID),
        version=str(meta_raw.get("version") or APP_VERSION),
        updated_at=str(meta_raw.get("updatedAt") or _utc_iso()),
    )
    return AppState(
        settings=normalize_settings(raw["settings"], today=today, default_horizon=default_horizon),
        debts=tuple(normalize_debt(item) for item in raw["debts"]),
        meta=meta,
    )


class StateStore:
    """Loads and saves state/profile documents through a repository."""

    def __init__(
        self,
        repository: DocumentRepository,
        *,
        today: Optional[date] = None,
        currency: str = "EUR",
        horizon_months: int = DEFAULT_HORIZON_MONTHS,
    ):
        self.repository = repository
        self.today = today
        self.currency = currency
        self.horizon_months = horizon_months

    def _read(self, key: str) -> Any:
        document = self.repository.get(key)
        if document is None:
            return None
        return json.loads(document.value)

    def _default_state(self) -> AppState:
        return default_state(
            self.today, currency=self.currency, horizon_months=self.horizon_months
        )

    def load_state(self) -> AppState:
        """Return the stored state, persisting the defaults when there is none.

        The example debt gets a fresh id each time defaults are built, so the
        default state is written back to keep ids stable across loads.
        """
        try:
            raw = self._read(STATE_KEY)
            if raw is not None:
                return normalize_state(raw, today=self.today, default_horizon=self.horizon_months)
        except (ValueError, TypeError, ArithmeticError) as exc:
            logger.warning("Stored state unreadable; using defaults", extra={"error": str(exc)})
        return self.save_state(self._default_state())

    def save_state(self, state: AppState) -> AppState:
        stamped = touch(state)
        self.repository.set(STATE_KEY, json.dumps(state_to_record(stamped)))
        return stamped

    def load_profile(self) -> Profile:
        try:
            raw = self._read(PROFILE_KEY)
            if raw is None:
                return default_profile()
            return profile_from_record(raw)
        except (ValueError, TypeError, ArithmeticError) as exc:
            logger.warning("Stored profile unreadable; using defaults", extra={"error": str(exc)})
            return default_profile()

    def save_profile(self, profile: Profile) -> Profile:
        self.repository.set(PROFILE_KEY, json.dumps(profile_to_record(profile)))
        return profile


__all__ = [
    "APP_ID",
    "APP_VERSION",
    "AppState",
    "PROFILE_KEY",
    "Profile",
    "STATE_KEY",
    "StateMeta",
    "StateStore",
    "Totals",
    "add_debt",
    "default_profile",
    "default_state",
    "delete_debt",
    "normalize_state",
    "ordered_debts",
    "profile_from_record",
    "profile_to_record",
    "state_to_record",
    "state_totals",
    "touch",
    "update_debt",
    "update_settings",
]
