"""Service layer: payoff simulation, state handling, import/export and reports."""

from .debts import Debt, PlanSettings, ScheduleResult, ScheduleRow, Strategy, simulate

__all__ = ["Debt", "PlanSettings", "ScheduleResult", "ScheduleRow", "Strategy", "simulate"]
