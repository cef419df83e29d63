"""Payoff plan blueprint package."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint("plan", __name__, url_prefix="/plan")

from . import routes  # noqa: E402,F401

__all__ = ["bp"]
