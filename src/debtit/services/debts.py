"""Debt payoff simulator (snowball and avalanche).

The simulator walks a debt portfolio forward one month at a time. Each month
interest is accrued first, the unsettled debts are re-ranked by the active
strategy, every minimum payment is applied, and finally the extra budget
cascades down the ranking until it is spent. The run stops when every debt is
settled or the horizon is reached.

All money is held as ``Decimal`` and rounded to cents after each operation.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import MAX_EMAX, MIN_EMIN, ROUND_HALF_UP, Decimal, getcontext, localcontext
from enum import Enum
from functools import lru_cache
from typing import Callable, Iterable, Iterator, Sequence

from ..logging_config import get_logger

logger = get_logger("services.debts")

CENT = Decimal("0.01")
SETTLED_EPSILON = CENT
ZERO = Decimal("0.00")
DEFAULT_HORIZON_MONTHS = 240
MAX_HORIZON_MONTHS = 1200


def round2(value: Decimal | int | float) -> Decimal:
    """Round to cents using half-up rounding.

    Amounts too large to carry cents within the context precision are rounded
    to whole units instead.
    """

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value.is_finite() and value.adjusted() + 3 >= getcontext().prec:
        return value.to_integral_value(rounding=ROUND_HALF_UP)
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@contextmanager
def money_context() -> Iterator[None]:
    """Widen the exponent range so runaway balances keep growing instead of overflowing."""

    with localcontext() as ctx:
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        yield


def current_month(today: date | None = None) -> str:
    """Return the ``YYYY-MM`` label for *today*."""

    return (today or date.today()).strftime("%Y-%m")


def add_months(month: str, count: int) -> str:
    """Shift a ``YYYY-MM`` label by ``count`` months."""

    year_text, month_text = month.split("-", 1)
    index = int(year_text) * 12 + (int(month_text) - 1) + count
    year, month_index = divmod(index, 12)
    return f"{year:04d}-{month_index + 1:02d}"


class Strategy(str, Enum):
    """Prioritization used to rank debts each month."""

    AVALANCHE = "avalanche"
    SNOWBALL = "snowball"


@dataclass(frozen=True, slots=True)
class Debt:
    """A single liability as configured by the user."""

    id: str
    name: str
    balance: Decimal
    apr: Decimal
    minimum_payment: Decimal
    due_day: int = 1
    notes: str = ""


@dataclass(frozen=True, slots=True)
class PlanSettings:
    """Plan-wide inputs for a simulation run."""

    strategy: Strategy = Strategy.AVALANCHE
    extra_monthly: Decimal = ZERO
    start_month: str = field(default_factory=current_month)
    horizon_months: int = DEFAULT_HORIZON_MONTHS
    currency: str = "EUR"


@dataclass(frozen=True, slots=True)
class ScheduleRow:
    """Ledger entry for one simulated month.

    ``interest_by_id`` and ``payment_by_id`` only contain debts that were
    unsettled when the month began.
    """

    month: str
    interest_by_id: dict[str, Decimal]
    payment_by_id: dict[str, Decimal]
    remaining: Decimal

    @property
    def total_interest(self) -> Decimal:
        return round2(sum(self.interest_by_id.values(), ZERO))

    @property
    def total_paid(self) -> Decimal:
        return round2(sum(self.payment_by_id.values(), ZERO))


@dataclass(frozen=True, slots=True)
class ScheduleResult:
    """Outcome of a simulation run."""

    rows: tuple[ScheduleRow, ...] = ()
    payoff_month: str | None = None
    total_interest: Decimal = ZERO
    total_paid: Decimal = ZERO
    months: int = 0

    @property
    def paid_off(self) -> bool:
        return self.payoff_month is not None


@dataclass(slots=True)
class DebtPosition:
    """Working balance for one debt inside a simulation run."""

    debt: Debt
    balance: Decimal

    @property
    def id(self) -> str:
        return self.debt.id

    @property
    def apr(self) -> Decimal:
        return self.debt.apr

    @property
    def settled(self) -> bool:
        return self.balance <= SETTLED_EPSILON


def debt_sort_key(strategy: Strategy | str) -> Callable[[Debt | DebtPosition], tuple]:
    """Return the ranking key for ``strategy``.

    Avalanche orders by APR descending, then balance descending. Snowball
    orders by balance ascending. Remaining ties keep input order because
    ``sorted`` is stable.
    """

    if Strategy(strategy) is Strategy.SNOWBALL:
        return lambda item: (item.balance,)
    return lambda item: (-item.apr, -item.balance)


def order_debts(debts: Iterable[Debt], strategy: Strategy | str) -> list[Debt]:
    """Return ``debts`` in payoff priority order for ``strategy``."""

    return sorted(debts, key=debt_sort_key(strategy))


def _apply_payment(
    position: DebtPosition, amount: Decimal, payment_by_id: dict[str, Decimal]
) -> None:
    position.balance = round2(position.balance - amount)
    payment_by_id[position.id] = round2(payment_by_id.get(position.id, ZERO) + amount)


@money_context()
def step_month(
    positions: Sequence[DebtPosition],
    *,
    strategy: Strategy | str,
    extra_monthly: Decimal,
    month: str,
) -> ScheduleRow:
    """Advance every position by one month and return that month's row.

    Balances in ``positions`` are updated in place. The ranking is computed
    once, after interest accrues, and is not revisited during the cascade.
    """

    interest_by_id: dict[str, Decimal] = {}
    for position in positions:
        if position.settled:
            continue
        interest = round2(position.balance * position.apr / 100 / 12)
        position.balance = round2(position.balance + interest)
        interest_by_id[position.id] = interest

    order = sorted(
        (position for position in positions if not position.settled),
        key=debt_sort_key(strategy),
    )

    payment_by_id: dict[str, Decimal] = {}
    for position in order:
        if position.settled:
            continue
        _apply_payment(
            position, round2(min(position.debt.minimum_payment, position.balance)), payment_by_id
        )

    extra_pool = round2(max(extra_monthly, ZERO))
    index = 0
    while extra_pool > SETTLED_EPSILON and index < len(order):
        target = order[index]
        if target.settled:
            index += 1
            continue
        payment = round2(min(extra_pool, target.balance))
        _apply_payment(target, payment, payment_by_id)
        extra_pool = round2(extra_pool - payment)
        if target.settled:
            index += 1

    remaining = round2(
        sum((position.balance for position in positions if not position.settled), ZERO)
    )
    return ScheduleRow(
        month=month,
        interest_by_id=interest_by_id,
        payment_by_id=payment_by_id,
        remaining=remaining,
    )


def _open_position(debt: Debt) -> DebtPosition:
    cleaned = replace(
        debt,
        balance=round2(max(debt.balance, ZERO)),
        apr=max(debt.apr, ZERO),
        minimum_payment=round2(max(debt.minimum_payment, ZERO)),
    )
    return DebtPosition(debt=cleaned, balance=cleaned.balance)


@money_context()
def simulate(debts: Iterable[Debt], settings: PlanSettings) -> ScheduleResult:
    """Run the month-by-month payoff simulation.

    Debts that are already settled are dropped before the first month. The
    result either carries a payoff month (every debt settled) or, when the
    horizon runs out first, ``payoff_month`` is ``None`` and ``months`` equals
    the horizon.
    """

    positions = [position for position in map(_open_position, debts) if not position.settled]
    if not positions:
        return ScheduleResult()

    rows: list[ScheduleRow] = []
    total_interest = ZERO
    total_paid = ZERO
    month = settings.start_month

    for index in range(settings.horizon_months):
        row = step_month(
            positions,
            strategy=settings.strategy,
            extra_monthly=settings.extra_monthly,
            month=month,
        )
        rows.append(row)
        total_interest = round2(total_interest + row.total_interest)
        total_paid = round2(total_paid + row.total_paid)

        if all(position.settled for position in positions):
            logger.debug(
                "Payoff reached",
                extra={
                    "strategy": Strategy(settings.strategy).value,
                    "debts": len(positions),
                    "months": index + 1,
                },
            )
            return ScheduleResult(
                rows=tuple(rows),
                payoff_month=row.month,
                total_interest=total_interest,
                total_paid=total_paid,
                months=index + 1,
            )

        month = add_months(month, 1)

    logger.debug(
        "Horizon exceeded before payoff",
        extra={
            "strategy": Strategy(settings.strategy).value,
            "debts": len(positions),
            "horizon": settings.horizon_months,
        },
    )
    return ScheduleResult(
        rows=tuple(rows),
        payoff_month=None,
        total_interest=total_interest,
        total_paid=total_paid,
        months=settings.horizon_months,
    )


@lru_cache(maxsize=128)
def _simulate_frozen(debts: tuple[Debt, ...], settings: PlanSettings) -> ScheduleResult:
    return simulate(debts, settings)


def simulate_cached(debts: Iterable[Debt], settings: PlanSettings) -> ScheduleResult:
    """Memoized :func:`simulate`; callers must treat the result as read-only."""

    return _simulate_frozen(tuple(debts), settings)


__all__ = [
    "Debt",
    "DebtPosition",
    "PlanSettings",
    "ScheduleResult",
    "ScheduleRow",
    "Strategy",
    "add_months",
    "current_month",
    "money_context",
    "debt_sort_key",
    "order_debts",
    "round2",
    "simulate",
    "simulate_cached",
    "step_month",
]
