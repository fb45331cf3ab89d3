"""
Pricing model classes.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class PriceRate:
    """Billing rates for one model name or pattern, per one million tokens (USD)."""
    model: str
    input_price_per_1m: Decimal
    cached_input_price_per_1m: Decimal
    output_price_per_1m: Decimal
    id: Optional[int] = None

    @classmethod
    def from_db_row(cls, row) -> "PriceRate":
        """Create PriceRate from database row."""
        return cls(
            id=row.id,
            model=row.model,
            input_price_per_1m=Decimal(str(row.input_price_per_1m or 0)),
            cached_input_price_per_1m=Decimal(str(row.cached_input_price_per_1m or 0)),
            output_price_per_1m=Decimal(str(row.output_price_per_1m or 0)),
        )

    @property
    def is_pattern(self) -> bool:
        return any(ch in self.model for ch in "*?[")

    @property
    def literal_prefix(self) -> str:
        """Characters before the first wildcard; longer means more specific."""
        for index, ch in enumerate(self.model):
            if ch in "*?[":
                return self.model[:index]
        return self.model


@dataclass(frozen=True)
class TokenCounts:
    """Token counts to be priced. cached_tokens is a subset of input_tokens."""
    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0
