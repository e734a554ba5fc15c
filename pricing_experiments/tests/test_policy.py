"""
Tests unitaires pour policy.py
"""

import itertools

import pytest

from pricing_experiments.config import Guardrails
from pricing_experiments.policy import HOLD_RATIONALE, decide_delta

DEFAULT_GUARDRAILS = Guardrails(min_delta_percent=-10.0, max_delta_percent=10.0, max_variants=8)


class TestDecideDelta:
    """Tests des règles de la politique (première règle applicable)."""

    def test_no_inventory_holds(self, make_candidate):
        candidate = make_candidate(inventory_quantity=5, reserved_quantity=5, units_30d=60)
        decision = decide_delta(candidate, DEFAULT_GUARDRAILS)
        assert decision.delta_percent == 0
        assert "No available inventory" in decision.rationale

    def test_high_velocity_constrained_stock(self, make_candidate):
        """Scénario : 50 unités, 5 en stock, 20 $, garde-fous [-10, 10] -> +6."""
        candidate = make_candidate(units_30d=50, inventory_quantity=5, current_price=20.0)
        assert decide_delta(candidate, DEFAULT_GUARDRAILS).delta_percent == 6

    def test_strong_demand(self, make_candidate):
        candidate = make_candidate(units_30d=30, inventory_quantity=50)
        assert decide_delta(candidate, DEFAULT_GUARDRAILS).delta_percent == 3

    def test_low_sell_through_excess_stock(self, make_candidate):
        candidate = make_candidate(units_30d=2, inventory_quantity=25)
        assert decide_delta(candidate, DEFAULT_GUARDRAILS).delta_percent == -7

    def test_soft_demand(self, make_candidate):
        candidate = make_candidate(units_30d=6, inventory_quantity=15)
        assert decide_delta(candidate, DEFAULT_GUARDRAILS).delta_percent == -4

    def test_activation_discount(self, make_candidate):
        """Scénario : 0 unité, 0 revenu, 10 en stock -> -5."""
        candidate = make_candidate(units_30d=0, revenue_30d=0.0, inventory_quantity=10)
        decision = decide_delta(candidate, DEFAULT_GUARDRAILS)
        assert decision.delta_percent == -5
        assert "activation" in decision.rationale

    def test_hold_otherwise(self, make_candidate):
        candidate = make_candidate(units_30d=15, revenue_30d=300.0, inventory_quantity=10)
        decision = decide_delta(candidate, DEFAULT_GUARDRAILS)
        assert decision.delta_percent == 0
        assert decision.rationale == HOLD_RATIONALE

    def test_reserved_stock_is_not_available(self, make_candidate):
        """30 en stock dont 20 réservés : 10 disponibles, pas de forte baisse."""
        candidate = make_candidate(units_30d=2, revenue_30d=40.0, inventory_quantity=30, reserved_quantity=20)
        assert decide_delta(candidate, DEFAULT_GUARDRAILS).delta_percent == 0


class TestPriceProtections:
    """Tests des protections petits prix / prix premium."""

    def test_cheap_item_markdown_is_limited(self, make_candidate):
        candidate = make_candidate(units_30d=2, inventory_quantity=25, current_price=4.5)
        assert decide_delta(candidate, DEFAULT_GUARDRAILS).delta_percent == -2

    def test_premium_item_markup_is_capped(self, make_candidate):
        candidate = make_candidate(units_30d=50, inventory_quantity=5, current_price=250.0)
        assert decide_delta(candidate, DEFAULT_GUARDRAILS).delta_percent == 4


class TestGuardrailClamping:
    """Le delta reste toujours dans [min, max]."""

    def test_clamped_to_narrow_upper_bound(self, make_candidate):
        candidate = make_candidate(units_30d=50, inventory_quantity=5)
        guardrails = Guardrails(min_delta_percent=-1.0, max_delta_percent=2.0, max_variants=8)
        assert decide_delta(candidate, guardrails).delta_percent == 2

    def test_clamped_to_narrow_lower_bound(self, make_candidate):
        candidate = make_candidate(units_30d=2, inventory_quantity=25)
        guardrails = Guardrails(min_delta_percent=-3.0, max_delta_percent=0.0, max_variants=8)
        assert decide_delta(candidate, guardrails).delta_percent == -3

    @pytest.mark.parametrize(
        "lower,upper",
        [(-20, 20), (-10, 10), (-3, 0), (0, 0), (0, 2), (-20, 0), (-1.5, 1.5), (0, 20)],
    )
    def test_output_always_within_bounds(self, make_candidate, lower, upper):
        guardrails = Guardrails(min_delta_percent=lower, max_delta_percent=upper, max_variants=8)
        profiles = itertools.product(
            [0, 2, 6, 10, 30, 50],        # unités 30 jours
            [0, 5, 8, 12, 25],            # stock
            [0.0, 150.0],                 # revenu 30 jours
            [3.0, 20.0, 250.0],           # prix
        )
        for units, inventory, revenue, price in profiles:
            candidate = make_candidate(
                units_30d=units,
                inventory_quantity=inventory,
                revenue_30d=revenue,
                current_price=price,
            )
            delta = decide_delta(candidate, guardrails).delta_percent
            assert lower <= delta <= upper
