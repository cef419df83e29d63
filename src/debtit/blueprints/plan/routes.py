"""Plan routes: state editing, schedule, import/export and the printable report."""

from __future__ import annotations

from typing import Any

from flask import Response, current_app, jsonify, request

from ...extensions import get_store
from ...logging_config import get_logger
from ...services.debts import SETTLED_EPSILON, ScheduleResult, simulate_cached
from ...services.normalize import ValidationError, debt_to_record
from ...services.reports import render_plan_report
from ...services.state import (
    AppState,
    add_debt,
    delete_debt,
    ordered_debts,
    profile_from_record,
    profile_to_record,
    state_to_record,
    state_totals,
    update_debt,
    update_settings,
)
from ...services.transfer import (
    ImportFailed,
    export_filename,
    export_json,
    parse_import,
    result_to_record,
)
from . import bp

logger = get_logger("blueprints.plan")


def _json_error(message: str, status: int, details: Any = None):
    payload: dict[str, Any] = {"error": message}
    if details is not None:
        payload["details"] = details
    return jsonify(payload), status


def _payload() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError({"body": ["Expected a JSON object."]})
    return body


def _schedule(state: AppState) -> ScheduleResult:
    return simulate_cached(state.debts, state.settings)


@bp.errorhandler(ValidationError)
def _validation_failed(exc: ValidationError):
    return _json_error("validation_failed", 400, exc.errors)


def _unknown_debt(debt_id: str):
    return _json_error("debt_not_found", 404, {"id": debt_id})


@bp.get("/")
def overview():
    """Current state, profile, totals, priority order and schedule."""

    store = get_store()
    state = store.load_state()
    totals = state_totals(state.debts)
    return jsonify(
        {
            "state": state_to_record(state),
            "profile": profile_to_record(store.load_profile()),
            "totals": {
                "totalBalance": float(totals.total_balance),
                "totalMin": float(totals.total_minimum),
                "activeDebts": sum(1 for debt in state.debts if debt.balance > SETTLED_EPSILON),
            },
            "order": [debt.id for debt in ordered_debts(state)],
            "schedule": result_to_record(_schedule(state)),
        }
    )


@bp.get("/schedule")
def schedule():
    state = get_store().load_state()
    return jsonify(result_to_record(_schedule(state)))


@bp.patch("/settings")
def patch_settings():
    store = get_store()
    state = store.save_state(update_settings(store.load_state(), **_payload()))
    return jsonify(state_to_record(state)["settings"])


@bp.post("/debts")
def create_debt():
    store = get_store()
    state = store.save_state(add_debt(store.load_state(), **_payload()))
    return jsonify(debt_to_record(state.debts[-1])), 201


@bp.patch("/debts/<debt_id>")
def patch_debt(debt_id: str):
    store = get_store()
    try:
        state = update_debt(store.load_state(), debt_id, **_payload())
    except KeyError:
        return _unknown_debt(debt_id)
    state = store.save_state(state)
    debt = next(item for item in state.debts if item.id == debt_id)
    return jsonify(debt_to_record(debt))


@bp.delete("/debts/<debt_id>")
def remove_debt(debt_id: str):
    store = get_store()
    try:
        state = delete_debt(store.load_state(), debt_id)
    except KeyError:
        return _unknown_debt(debt_id)
    store.save_state(state)
    return "", 204


@bp.put("/profile")
def put_profile():
    store = get_store()
    profile = store.save_profile(profile_from_record(_payload()))
    return jsonify(profile_to_record(profile))


@bp.get("/export")
def export_plan():
    store = get_store()
    body = export_json(profile=store.load_profile(), state=store.load_state())
    return Response(
        body,
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@bp.post("/import")
def import_plan():
    store = get_store()
    try:
        profile, state = parse_import(
            request.get_data(as_text=True), current_profile=store.load_profile()
        )
    except ImportFailed as exc:
        return _json_error(str(exc), 400)
    store.save_profile(profile)
    state = store.save_state(state)
    logger.info("Plan imported", extra={"debts": len(state.debts)})
    return jsonify({"state": state_to_record(state), "profile": profile_to_record(profile)})


@bp.get("/report")
def report():
    store = get_store()
    state = store.load_state()
    config = current_app.config["DEBTIT_CONFIG"]
    text = render_plan_report(
        result=_schedule(state),
        debts=state.debts,
        settings=state.settings,
        profile=store.load_profile(),
        max_rows=config.REPORT_ROWS,
    )
    return Response(text, mimetype="text/plain")
