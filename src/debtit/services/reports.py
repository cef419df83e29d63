"""Printable payoff plan and payoff chart."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from .debts import Debt, PlanSettings, ScheduleResult, ScheduleRow, order_debts
from .state import Profile, state_totals

DEFAULT_REPORT_ROWS = 24


@dataclass(frozen=True, slots=True)
class RowSummary:
    """Month totals shown in the schedule table."""

    month: str
    remaining: Decimal
    interest: Decimal
    paid: Decimal
    top_debt: str


def money(amount: Decimal | float | None, currency: str) -> str:
    if amount is None:
        return "-"
    return f"{Decimal(str(amount)):.2f} {currency}"


def payoff_label(result: ScheduleResult, horizon_months: int) -> str:
    if result.payoff_month:
        return f"{result.payoff_month} ({result.months} months)"
    return f"Not within {horizon_months} months"


def summarize_row(row: ScheduleRow, debts: Iterable[Debt]) -> RowSummary:
    """Month totals plus the name of the debt that received the most money."""

    names = {debt.id: debt.name for debt in debts}
    top_debt = "-"
    if row.payment_by_id:
        # Stable sort: the first of equally paid debts wins
        top_id = sorted(row.payment_by_id.items(), key=lambda item: item[1], reverse=True)[0][0]
        top_debt = names.get(top_id) or "-"
    return RowSummary(
        month=row.month,
        remaining=row.remaining,
        interest=row.total_interest,
        paid=row.total_paid,
        top_debt=top_debt,
    )


def render_plan_report(
    *,
    result: ScheduleResult,
    debts: Iterable[Debt],
    settings: PlanSettings,
    profile: Profile,
    now: datetime | None = None,
    max_rows: int = DEFAULT_REPORT_ROWS,
) -> str:
    """Render the plain-text payoff plan.

    The schedule section is capped at ``max_rows`` rows no matter how many
    months were simulated.
    """

    debts = list(debts)
    currency = settings.currency
    totals = state_totals(debts)
    generated = (now or datetime.now()).strftime("%Y-%m-%d %H:%M")

    lines = [
        f"{profile.org} - Debt payoff plan",
        "",
        f"Prepared by: {profile.user or '-'}",
        f"Generated:   {generated}",
        f"Strategy:    {settings.strategy.value}",
        f"Start month: {settings.start_month}",
        f"Extra/month: {money(settings.extra_monthly, currency)}",
        "",
        f"Total balance: {money(totals.total_balance, currency)} | "
        f"Minimum total: {money(totals.total_minimum, currency)}",
        f"Estimated payoff: {payoff_label(result, settings.horizon_months)}",
        f"Total interest (estimate): {money(result.total_interest, currency)}",
        f"Total paid (estimate): {money(result.total_paid, currency)}",
        "",
        "Priority order",
        f"{'#':>3}  {'Debt':<24} {'Balance':>14} {'APR':>8} {'Min':>12}",
    ]
    for position, debt in enumerate(order_debts(debts, settings.strategy), start=1):
        lines.append(
            f"{position:>3}  {(debt.name or '-')[:24]:<24} "
            f"{money(debt.balance, currency):>14} {f'{debt.apr:.2f}%':>8} "
            f"{money(debt.minimum_payment, currency):>12}"
        )

    lines += [
        "",
        f"Schedule (first {max_rows} months)",
        f"{'Month':<8} {'Remaining':>14} {'Interest':>12} {'Paid':>12}  Top payment",
    ]
    if not result.rows:
        lines.append("Add debts with balances.")
    for row in result.rows[:max_rows]:
        summary = summarize_row(row, debts)
        lines.append(
            f"{summary.month:<8} {money(summary.remaining, currency):>14} "
            f"{money(summary.interest, currency):>12} {money(summary.paid, currency):>12}  "
            f"{summary.top_debt}"
        )

    return "\n".join(lines) + "\n"


def build_payoff_chart(result: ScheduleResult, *, currency: str = "EUR") -> Figure:
    """Line chart of the remaining balance after each simulated month."""

    months = [row.month for row in result.rows]
    totals = [float(row.remaining) for row in result.rows]

    fig, ax = plt.subplots(figsize=(10, 6))

    if totals:
        x_vals = list(range(len(totals)))
        ax.plot(x_vals, totals, marker="o", color="#4F46E5", linewidth=2.5, markersize=4)
        ax.fill_between(x_vals, totals, color="#E0E7FF", alpha=0.5)

        step = max(len(months) // 12, 1)
        ax.set_xticks(x_vals[::step])
        ax.set_xticklabels(months[::step], rotation=45, ha="right")
        ax.set_ylabel(f"Remaining ({currency})")
        ax.set_ylim(bottom=0)
        ax.grid(True, alpha=0.3)

        title = (
            f"Debt free by {result.payoff_month}"
            if result.payoff_month
            else f"Balance after {result.months} months"
        )
        ax.set_title(title, fontsize=14, fontweight="bold")
    else:
        ax.text(0.5, 0.5, "No payoff schedule", ha="center", va="center", fontsize=14, color="#666")
        ax.axis("off")

    fig.tight_layout()
    return fig


def payoff_chart_png(result: ScheduleResult, *, output_path: Path, currency: str = "EUR") -> Path:
    """Render :func:`build_payoff_chart` to ``output_path``."""

    fig = build_payoff_chart(result, currency=currency)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, bbox_inches="tight", dpi=100)
    finally:
        plt.close(fig)
    return output_path


__all__ = [
    "DEFAULT_REPORT_ROWS",
    "RowSummary",
    "build_payoff_chart",
    "money",
    "payoff_chart_png",
    "payoff_label",
    "render_plan_report",
    "summarize_row",
]
