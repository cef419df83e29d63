"""JSON import/export of the planner state and CSV export of schedules."""

from __future__ import annotations

import csv
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable

from ..logging_config import get_logger
from .debts import Debt, ScheduleResult
from .normalize import ValidationError
from .state import (
    APP_VERSION,
    AppState,
    Profile,
    normalize_state,
    profile_from_record,
    profile_to_record,
    state_to_record,
    touch,
)

logger = get_logger("services.transfer")


class ImportFailed(ValueError):
    """Import payload rejected; the message is shown to the user as-is."""

    def __init__(self, reason: str):
        super().__init__(f"Import failed: {reason}")


def _money(value: Decimal) -> float:
    return float(value)


def build_export(
    *, profile: Profile, state: AppState, now: datetime | None = None
) -> dict[str, Any]:
    """Return the export document: ``exportedAt``, ``profile`` and ``data``."""

    return {
        "exportedAt": (now or datetime.now(timezone.utc)).isoformat(),
        "profile": profile_to_record(profile),
        "data": state_to_record(state),
    }


def export_json(*, profile: Profile, state: AppState, now: datetime | None = None) -> str:
    return json.dumps(build_export(profile=profile, state=state, now=now), indent=2)


def export_filename(today: date | None = None) -> str:
    return f"toolstack-debt-it-{APP_VERSION}-{(today or date.today()).isoformat()}.json"


def parse_import(text: str, *, current_profile: Profile) -> tuple[Profile, AppState]:
    """Parse an export document.

    The embedded state must carry a ``settings`` object and a ``debts`` list.
    A missing or malformed profile keeps ``current_profile``.
    """

    try:
        parsed = json.loads(text or "")
    except ValueError as exc:
        logger.warning("Import rejected: unparseable JSON", extra={"error": str(exc)})
        raise ImportFailed(str(exc)) from exc

    incoming = parsed.get("data") if isinstance(parsed, dict) else None
    if (
        not isinstance(incoming, dict)
        or not isinstance(incoming.get("settings"), dict)
        or not isinstance(incoming.get("debts"), list)
    ):
        logger.warning("Import rejected: missing settings or debts")
        raise ImportFailed("Invalid import file")

    try:
        state = normalize_state(incoming)
    except ValidationError as exc:
        logger.warning("Import rejected: invalid state", extra={"errors": exc.errors})
        raise ImportFailed(str(exc)) from exc
    except ArithmeticError as exc:
        logger.warning("Import rejected: unusable amounts", extra={"error": repr(exc)})
        raise ImportFailed("Invalid import file") from exc

    profile = current_profile
    raw_profile = parsed.get("profile")
    if raw_profile:
        try:
            profile = profile_from_record(raw_profile)
        except ValidationError:
            profile = current_profile
    return profile, touch(state)


def result_to_record(result: ScheduleResult) -> dict[str, Any]:
    """Serialize a schedule result with the wire field names."""

    return {
        "rows": [
            {
                "month": row.month,
                "interestById": {key: _money(v) for key, v in row.interest_by_id.items()},
                "paymentById": {key: _money(v) for key, v in row.payment_by_id.items()},
                "remaining": _money(row.remaining),
            }
            for row in result.rows
        ],
        "payoffMonth": result.payoff_month,
        "totalInterest": _money(result.total_interest),
        "totalPaid": _money(result.total_paid),
        "months": result.months,
    }


def export_schedule_csv(
    *, result: ScheduleResult, debts: Iterable[Debt], output_path: Path
) -> Path:
    """Write the month-level ledger to CSV at ``output_path``.

    Columns: month, interest, paid, remaining, then one payment column per
    debt named after the debt (falling back to its id).
    """

    debt_columns: list[tuple[str, str]] = []
    for debt in debts:
        label = f"paid:{debt.name or debt.id}"
        if any(label == existing for _, existing in debt_columns):
            label = f"paid:{debt.id}"
        debt_columns.append((debt.id, label))
    headers = ["month", "interest", "paid", "remaining"] + [label for _, label in debt_columns]
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", newline="", encoding="utf-8") as fh:
        writer = csv.DictWriter(
            fh, fieldnames=headers, extrasaction="ignore", quoting=csv.QUOTE_MINIMAL
        )
        writer.writeheader()
        for row in result.rows:
            record = {
                "month": row.month,
                "interest": str(row.total_interest),
                "paid": str(row.total_paid),
                "remaining": str(row.remaining),
            }
            for debt_id, label in debt_columns:
                payment = row.payment_by_id.get(debt_id)
                record[label] = "" if payment is None else str(payment)
            writer.writerow(record)

    return output_path


__all__ = [
    "ImportFailed",
    "build_export",
    "export_filename",
    "export_json",
    "export_schedule_csv",
    "parse_import",
    "result_to_record",
]
