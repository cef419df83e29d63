"""Tests for application state editing and persistence."""

from __future__ import annotations

import decimal
import json
import logging
from datetime import date
from decimal import Decimal

import pytest

from debtit.services.debts import Strategy
from debtit.services.normalize import ValidationError
from debtit.services.state import (
    PROFILE_KEY,
    STATE_KEY,
    AppState,
    Profile,
    StateStore,
    add_debt,
    default_state,
    delete_debt,
    normalize_state,
    ordered_debts,
    state_to_record,
    state_totals,
    update_debt,
    update_settings,
)


@pytest.fixture
def store(document_repository) -> StateStore:
    return StateStore(document_repository, today=date(2024, 5, 17))


class TestDefaults:
    def test_default_state_has_example_debt(self):
        state = default_state(date(2024, 5, 17))

        assert state.settings.strategy is Strategy.AVALANCHE
        assert state.settings.extra_monthly == Decimal("50.00")
        assert state.settings.start_month == "2024-05"
        assert len(state.debts) == 1
        example = state.debts[0]
        assert example.name == "Example debt"
        assert example.balance == Decimal("500.00")
        assert example.apr == Decimal("12.0")
        assert example.minimum_payment == Decimal("25.00")
        assert example.due_day == 1
        assert state.meta.app_id == "debtit"
        assert state.meta.version == "v1"

    def test_default_horizon_is_capped(self):
        assert default_state(horizon_months=5000).settings.horizon_months == 1200


class TestEditing:
    def test_add_blank_debt(self):
        state = add_debt(default_state())

        added = state.debts[-1]
        assert len(state.debts) == 2
        assert added.name == ""
        assert added.balance == Decimal("0.00")

    def test_add_duplicate_id_rejected(self):
        state = add_debt(default_state(), id="card", name="Card")

        with pytest.raises(ValidationError):
            add_debt(state, id="card")

    def test_update_debt_keeps_id(self):
        state = add_debt(default_state(), id="card", name="Card", balance=100)

        updated = update_debt(state, "card", id="other", balance="250.10", apr=19.9)

        card = next(d for d in updated.debts if d.id == "card")
        assert card.balance == Decimal("250.10")
        assert card.apr == Decimal("19.9")
        assert card.name == "Card"

    def test_update_unknown_debt(self):
        with pytest.raises(KeyError):
            update_debt(default_state(), "missing", balance=10)

    def test_delete_debt(self):
        state = add_debt(default_state(), id="card")

        assert [d.id for d in delete_debt(state, "card").debts] == [state.debts[0].id]
        with pytest.raises(KeyError):
            delete_debt(state, "missing")

    def test_update_settings_merges(self):
        state = update_settings(default_state(), strategy="snowball", extraMonthly=120)

        assert state.settings.strategy is Strategy.SNOWBALL
        assert state.settings.extra_monthly == Decimal("120.00")
        assert state.settings.currency == "EUR"

    def test_snake_case_patches_override_current_values(self):
        state = add_debt(default_state(), id="card", minimum_payment=20)
        assert state.debts[-1].minimum_payment == Decimal("20.00")
        state = update_settings(state, extra_monthly=75, horizon_months=12)
        state = update_debt(state, "card", minimum_payment=35, due_day=15)

        assert state.settings.extra_monthly == Decimal("75.00")
        assert state.settings.horizon_months == 12
        card = state.debts[-1]
        assert card.minimum_payment == Decimal("35.00")
        assert card.due_day == 15

    def test_edits_return_new_state(self):
        original = default_state()

        edited = update_settings(original, extraMonthly=10)

        assert original.settings.extra_monthly == Decimal("50.00")
        assert edited is not original

    def test_totals_and_order(self):
        state = add_debt(default_state(), id="hot", balance=100, apr=29.9, minPayment="10.5")
        state = update_settings(state, strategy="avalanche")

        totals = state_totals(state.debts)

        assert totals.total_balance == Decimal("600.00")
        assert totals.total_minimum == Decimal("35.50")
        assert ordered_debts(state)[0].id == "hot"


class TestNormalizeState:
    def test_requires_settings_and_debts(self):
        with pytest.raises(ValidationError) as excinfo:
            normalize_state({"meta": {}})
        assert set(excinfo.value.errors) == {"settings", "debts"}

    def test_record_round_trip(self):
        state = add_debt(default_state(date(2024, 1, 1)), id="x", balance=10)

        restored = normalize_state(json.loads(json.dumps(state_to_record(state))))

        assert restored == state


class TestStateStore:
    def test_load_defaults_when_empty(self, store):
        state = store.load_state()

        assert state.settings.start_month == "2024-05"
        assert [d.name for d in state.debts] == ["Example debt"]
        assert store.load_profile() == Profile()

    def test_default_state_is_persisted(self, store):
        first = store.load_state()

        assert store.load_state().debts == first.debts

    def test_save_and_load(self, store):
        state = add_debt(default_state(), id="card", name="Card", balance="321.99", apr=18)

        saved = store.save_state(state)
        loaded = store.load_state()

        assert isinstance(loaded, AppState)
        assert loaded.debts == saved.debts
        assert loaded.settings == saved.settings
        assert loaded.meta.updated_at == saved.meta.updated_at

    def test_huge_stored_balance_loads(self, store, document_repository):
        document = {
            "settings": {"strategy": "snowball", "startMonth": "2024-01"},
            "debts": [{"id": "big", "balance": 1e30, "apr": 12, "minPayment": 25}],
        }
        document_repository.set(STATE_KEY, json.dumps(document))

        state = store.load_state()

        assert [d.id for d in state.debts] == ["big"]
        assert state.debts[0].balance == Decimal("1e30")

    def test_arithmetic_failure_falls_back(self, store, document_repository, monkeypatch):
        def _unusable_amount(raw, **kwargs):
            raise decimal.InvalidOperation

        document_repository.set(STATE_KEY, json.dumps({"settings": {}, "debts": []}))
        monkeypatch.setattr("debtit.services.state.normalize_state", _unusable_amount)

        state = store.load_state()

        assert [d.name for d in state.debts] == ["Example debt"]

    @pytest.mark.parametrize(
        "stored",
        [
            "{not json",
            json.dumps({"settings": {"strategy": "avalanche"}}),
            json.dumps({"settings": {"strategy": "hybrid"}, "debts": []}),
            json.dumps(["a", "list"]),
        ],
    )
    def test_malformed_state_falls_back(self, store, document_repository, stored, caplog):
        document_repository.set(STATE_KEY, stored)

        with caplog.at_level(logging.WARNING, logger="debtit"):
            state = store.load_state()

        assert [d.name for d in state.debts] == ["Example debt"]
        assert any("using defaults" in message for message in caplog.messages)

    def test_profile_round_trip(self, store):
        store.save_profile(Profile(org="Acme", user="Sam", language="DE"))

        assert store.load_profile() == Profile(org="Acme", user="Sam", language="DE")

    def test_malformed_profile_falls_back(self, store, document_repository):
        document_repository.set(PROFILE_KEY, "[1, 2, 3]")

        assert store.load_profile() == Profile()
