"""
Tests for cost estimation, wildcard matching and the price table store.
"""
from decimal import Decimal

import pytest

from usage_monitor.models.model_price import ModelPrice
from usage_monitor.services.pricing import (
    DEFAULT_RATE,
    PriceRate,
    PriceTable,
    TokenCounts,
    calculate_cost,
    delete_price,
    estimate_cost,
    list_prices,
    load_price_table,
    upsert_price,
)


def rate(model, input_price, output_price, cached_price=0, id=None):
    return PriceRate(
        model=model,
        input_price_per_1m=Decimal(str(input_price)),
        cached_input_price_per_1m=Decimal(str(cached_price)),
        output_price_per_1m=Decimal(str(output_price)),
        id=id,
    )


class TestCalculateCost:
    def test_single_event_scenario(self):
        """1M input + 1M output at 2.5 / 10 costs 12.5."""
        cost = calculate_cost(TokenCounts(input_tokens=1_000_000, output_tokens=1_000_000), rate("gpt-4o", 2.5, 10))
        assert cost == pytest.approx(12.5)

    def test_cached_tokens_not_double_counted(self):
        tokens = TokenCounts(input_tokens=1_000_000, output_tokens=0, cached_tokens=400_000)
        cost = calculate_cost(tokens, rate("m", 2, 0, cached_price=0.5))
        assert cost == pytest.approx(0.6 * 2 + 0.4 * 0.5)

    def test_cached_above_input_is_not_negative(self):
        tokens = TokenCounts(input_tokens=10, output_tokens=0, cached_tokens=1_000_000)
        assert calculate_cost(tokens, rate("m", 2, 0, cached_price=0.5)) == pytest.approx(0.5)

    @pytest.mark.parametrize("input_tokens,output_tokens,cached_tokens", [
        (0, 0, 0),
        (5, 7, 3),
        (123_456_789, 1, 0),
    ])
    def test_cost_is_non_negative(self, input_tokens, output_tokens, cached_tokens):
        tokens = TokenCounts(input_tokens=input_tokens, output_tokens=output_tokens, cached_tokens=cached_tokens)
        assert calculate_cost(tokens, DEFAULT_RATE) >= 0


class TestPriceTableLookup:
    """Exact names beat patterns; the longest literal prefix wins among patterns."""

    def test_wildcard_matches_prefix(self):
        table = PriceTable([rate("gemini-2*", 1.25, 10, id=1)])
        assert table.lookup("gemini-2.5-pro").model == "gemini-2*"
        assert table.lookup("gemini-1.5-pro") is None

    def test_exact_beats_pattern(self):
        table = PriceTable([rate("gemini-2*", 1.25, 10, id=1), rate("gemini-2.5-pro", 2, 12, id=2)])
        assert table.lookup("gemini-2.5-pro").model == "gemini-2.5-pro"

    def test_most_specific_pattern_wins(self):
        table = PriceTable([rate("gemini-*", 1, 1, id=1), rate("gemini-2.5*", 2, 2, id=2), rate("*", 9, 9, id=3)])
        assert table.lookup("gemini-2.5-flash").model == "gemini-2.5*"
        assert table.lookup("gemini-1.0").model == "gemini-*"
        assert table.lookup("claude").model == "*"

    def test_equal_prefix_tie_goes_to_first_registered(self):
        table = PriceTable([rate("gpt-4?", 3, 3, id=7), rate("gpt-4*", 2, 2, id=4)])
        assert table.lookup("gpt-4o").model == "gpt-4*"

    def test_unmatched_model_uses_default_rate(self):
        table = PriceTable([rate("gpt-4o", 2.5, 10, id=1)])
        tokens = TokenCounts(input_tokens=1_000_000, output_tokens=1_000_000)
        assert estimate_cost(tokens, "unknown-model", table) == pytest.approx(3 + 15)

    def test_average_rate(self):
        table = PriceTable([rate("a", 2, 10, id=1), rate("b", 4, 20, cached_price=1, id=2)])
        average = table.average_rate()
        assert average.input_price_per_1m == Decimal(3)
        assert average.output_price_per_1m == Decimal(15)
        assert average.cached_input_price_per_1m == Decimal("0.5")
        assert PriceTable([]).average_rate() is DEFAULT_RATE


class TestPriceStore:
    def test_upsert_inserts_then_replaces(self, db):
        upsert_price(db, "gpt-4o", Decimal("2.5"), Decimal("10"))
        upsert_price(db, "gpt-4o", Decimal("3"), Decimal("12"), Decimal("1"))
        prices = list_prices(db)
        assert len(prices) == 1
        assert prices[0].input_price_per_1m == Decimal("3")
        assert prices[0].cached_input_price_per_1m == Decimal("1")

    def test_patterns_stored_verbatim(self, db):
        upsert_price(db, "gemini-2*", Decimal("1.25"), Decimal("10"))
        assert db.query(ModelPrice).one().model == "gemini-2*"
        table = load_price_table(db)
        assert table.rate_for("gemini-2.5-pro").model == "gemini-2*"

    def test_delete(self, db):
        upsert_price(db, "gpt-4o", Decimal("2.5"), Decimal("10"))
        assert delete_price(db, "gpt-4o") is True
        assert delete_price(db, "gpt-4o") is False
        assert list_prices(db) == []
