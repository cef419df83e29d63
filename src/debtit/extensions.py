"""Database and extension wiring for the Flask app."""

from __future__ import annotations

from flask import Flask, current_app

from .config import BaseConfig
from .infra.database import bootstrap_database
from .infra.repositories import SQLModelDocumentRepository
from .services.state import StateStore


def init_db(app: Flask) -> None:
    """Initialize the SQLModel engine using configuration from the app."""

    config: BaseConfig = app.config["DEBTIT_CONFIG"]
    engine, session_factory = bootstrap_database(config)
    app.extensions["debtit.engine"] = engine
    app.extensions["debtit.session_factory"] = session_factory


def get_store() -> StateStore:
    """Build a :class:`StateStore` bound to the current app's database."""

    config: BaseConfig = current_app.config["DEBTIT_CONFIG"]
    session_factory = current_app.extensions.get("debtit.session_factory")
    if session_factory is None:  # pragma: no cover - guarded by create_app
        raise RuntimeError("Database session factory not initialized")
    return StateStore(
        SQLModelDocumentRepository(session_factory),
        currency=config.DEFAULT_CURRENCY,
        horizon_months=config.HORIZON_MONTHS,
    )
