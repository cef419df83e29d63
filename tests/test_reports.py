"""Tests for the printable plan and the payoff chart."""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal

import matplotlib.pyplot as plt
import pytest
from matplotlib.figure import Figure

from debtit.services.debts import PlanSettings, ScheduleResult, ScheduleRow, Strategy, simulate
from debtit.services.reports import (
    build_payoff_chart,
    payoff_chart_png,
    payoff_label,
    render_plan_report,
    summarize_row,
)
from debtit.services.state import Profile

_ROW_LINE = re.compile(r"^\d{4}-\d{2} ")


def _settings(**overrides) -> PlanSettings:
    values = {
        "strategy": Strategy.AVALANCHE,
        "extra_monthly": Decimal("50"),
        "start_month": "2024-01",
        "currency": "EUR",
    }
    values.update(overrides)
    return PlanSettings(**values)


def test_summarize_row_picks_largest_payment(debt_factory):
    card = debt_factory(name="Card", debt_id="c")
    loan = debt_factory(name="Loan", debt_id="l")
    row = ScheduleRow(
        month="2024-01",
        interest_by_id={"c": Decimal("1.25"), "l": Decimal("3.10")},
        payment_by_id={"c": Decimal("20.00"), "l": Decimal("75.00")},
        remaining=Decimal("900.00"),
    )

    summary = summarize_row(row, [card, loan])

    assert summary.interest == Decimal("4.35")
    assert summary.paid == Decimal("95.00")
    assert summary.top_debt == "Loan"


def test_summarize_row_without_payments():
    row = ScheduleRow(month="2024-01", interest_by_id={}, payment_by_id={}, remaining=Decimal("0"))

    assert summarize_row(row, []).top_debt == "-"


def test_payoff_label():
    assert payoff_label(ScheduleResult(payoff_month="2024-07", months=7), 240) == "2024-07 (7 months)"
    assert payoff_label(ScheduleResult(months=240), 240) == "Not within 240 months"


def test_report_contents(debt_factory):
    debt = debt_factory(name="Example debt", balance="500", apr="12", minimum_payment="25")
    settings = _settings()
    result = simulate([debt], settings)

    text = render_plan_report(
        result=result,
        debts=[debt],
        settings=settings,
        profile=Profile(user="Sam"),
        now=datetime(2024, 1, 2, 9, 30),
    )

    assert "ToolStack - Debt payoff plan" in text
    assert "Prepared by: Sam" in text
    assert "Generated:   2024-01-02 09:30" in text
    assert "Extra/month: 50.00 EUR" in text
    assert "Total balance: 500.00 EUR | Minimum total: 25.00 EUR" in text
    assert "Estimated payoff: 2024-07 (7 months)" in text
    assert "Total interest (estimate): 20.05 EUR" in text
    rows = [line for line in text.splitlines() if _ROW_LINE.match(line)]
    assert len(rows) == 7
    assert rows[0].startswith("2024-01")
    assert "430.00 EUR" in rows[0]
    assert rows[0].endswith("Example debt")


def test_report_truncates_schedule(debt_factory):
    debt = debt_factory(balance="10000", apr="24", minimum_payment="50")
    settings = _settings(extra_monthly=Decimal("0"))
    result = simulate([debt], settings)

    text = render_plan_report(result=result, debts=[debt], settings=settings, profile=Profile())

    assert result.months == 240
    assert "Estimated payoff: Not within 240 months" in text
    assert "Schedule (first 24 months)" in text
    assert len([line for line in text.splitlines() if _ROW_LINE.match(line)]) == 24


def test_report_for_empty_plan():
    text = render_plan_report(
        result=ScheduleResult(), debts=[], settings=_settings(), profile=Profile()
    )

    assert "Add debts with balances." in text
    assert "Prepared by: -" in text


def test_payoff_chart(tmp_path, debt_factory):
    result = simulate([debt_factory(balance="900", apr="15", minimum_payment="60")], _settings())

    figure = build_payoff_chart(result)
    path = payoff_chart_png(result, output_path=tmp_path / "charts" / "payoff.png")

    assert isinstance(figure, Figure)
    assert path.exists()
    assert path.read_bytes().startswith(b"\x89PNG")


def test_payoff_chart_empty_result():
    figure = build_payoff_chart(ScheduleResult())

    assert isinstance(figure, Figure)


def test_payoff_chart_closes_figure_when_save_fails(tmp_path, debt_factory, monkeypatch):
    result = simulate([debt_factory(balance="900", apr="15", minimum_payment="60")], _settings())
    open_before = len(plt.get_fignums())

    def _fail(self, *args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(Figure, "savefig", _fail)

    with pytest.raises(OSError):
        payoff_chart_png(result, output_path=tmp_path / "payoff.png")

    assert len(plt.get_fignums()) == open_before
