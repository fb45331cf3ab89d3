"""
Pricing service for the model price table and cost estimation.
"""
from usage_monitor.services.pricing.pricing_service import (
    DEFAULT_RATE,
    PriceTable,
    calculate_cost,
    estimate_cost,
    list_prices,
    load_price_table,
    upsert_price,
    delete_price,
)
from usage_monitor.services.pricing.pricing_models import PriceRate, TokenCounts

__all__ = [
    "DEFAULT_RATE",
    "PriceTable",
    "calculate_cost",
    "estimate_cost",
    "list_prices",
    "load_price_table",
    "upsert_price",
    "delete_price",
    "PriceRate",
    "TokenCounts",
]
