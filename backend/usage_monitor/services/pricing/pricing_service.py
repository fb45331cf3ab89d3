"""
Pricing service for the model price table and cost estimation.

This service handles:
- Listing, upserting and deleting model prices
- Matching event model names against exact names and wildcard patterns
- Estimating cost from token counts

Prices are not versioned: the current table is used for every estimate,
including estimates over historical windows.
"""
import logging
from decimal import Decimal
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from usage_monitor.core.errors import StorageError
from usage_monitor.models.model_price import ModelPrice
from usage_monitor.services.pricing.pricing_models import PriceRate, TokenCounts

logger = logging.getLogger(__name__)

ONE_MILLION = Decimal(1_000_000)

# Applied when no configured price matches, so unpriced models still get a plausible estimate
DEFAULT_RATE = PriceRate(
    model="*",
    input_price_per_1m=Decimal("3"),
    cached_input_price_per_1m=Decimal("0.3"),
    output_price_per_1m=Decimal("15"),
)


class PriceTable:
    """
    Immutable snapshot of configured prices.

    Lookup order: an exact model name wins; otherwise the matching pattern with the
    longest literal prefix wins; ties go to the pattern registered first (lowest id).
    Patterns use glob syntax, so a trailing "*" is a prefix match.
    """

    def __init__(self, rates: Iterable[PriceRate]):
        self.rates: List[PriceRate] = sorted(rates, key=lambda r: (r.id is None, r.id or 0))
        self._exact = {r.model: r for r in self.rates if not r.is_pattern}
        self._patterns = [r for r in self.rates if r.is_pattern]

    def __len__(self) -> int:
        return len(self.rates)

    def lookup(self, model: str) -> Optional[PriceRate]:
        exact = self._exact.get(model)
        if exact is not None:
            return exact
        best = None
        for rate in self._patterns:
            if not fnmatchcase(model, rate.model):
                continue
            if best is None or len(rate.literal_prefix) > len(best.literal_prefix):
                best = rate
        return best

    def rate_for(self, model: str) -> PriceRate:
        return self.lookup(model) or DEFAULT_RATE

    def average_rate(self) -> PriceRate:
        """Mean of all configured rates; the default rate when the table is empty."""
        if not self.rates:
            return DEFAULT_RATE
        count = Decimal(len(self.rates))
        return PriceRate(
            model="average",
            input_price_per_1m=sum((r.input_price_per_1m for r in self.rates), Decimal(0)) / count,
            cached_input_price_per_1m=sum((r.cached_input_price_per_1m for r in self.rates), Decimal(0)) / count,
            output_price_per_1m=sum((r.output_price_per_1m for r in self.rates), Decimal(0)) / count,
        )


def calculate_cost(tokens: TokenCounts, rate: PriceRate) -> float:
    """
    Cost in USD for token counts at the given rate.

    Cached tokens are billed at the cached rate and removed from the input bucket.
    """
    cached = max(int(tokens.cached_tokens or 0), 0)
    uncached_input = max(int(tokens.input_tokens or 0) - cached, 0)
    output = max(int(tokens.output_tokens or 0), 0)
    cost = (
        Decimal(uncached_input) / ONE_MILLION * rate.input_price_per_1m
        + Decimal(cached) / ONE_MILLION * rate.cached_input_price_per_1m
        + Decimal(output) / ONE_MILLION * rate.output_price_per_1m
    )
    return float(cost)


def estimate_cost(tokens: TokenCounts, model: str, price_table: PriceTable) -> float:
    """Estimate cost for a model name, falling back to DEFAULT_RATE when nothing matches."""
    return calculate_cost(tokens, price_table.rate_for(model))


def list_prices(db: Session) -> List[ModelPrice]:
    try:
        return db.query(ModelPrice).order_by(ModelPrice.model).all()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to list model prices: {e}") from e


def load_price_table(db: Session) -> PriceTable:
    try:
        rows = db.query(ModelPrice).all()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to load model prices: {e}") from e
    return PriceTable(PriceRate.from_db_row(row) for row in rows)


def upsert_price(
    db: Session,
    model: str,
    input_price_per_1m: Decimal,
    output_price_per_1m: Decimal,
    cached_input_price_per_1m: Decimal = Decimal(0),
) -> ModelPrice:
    """
    Insert or replace the price for an exact model string.

    Wildcard patterns are stored verbatim and only interpreted when estimating cost.
    """
    def _apply(target: ModelPrice) -> None:
        target.input_price_per_1m = input_price_per_1m
        target.cached_input_price_per_1m = cached_input_price_per_1m
        target.output_price_per_1m = output_price_per_1m

    try:
        price = db.query(ModelPrice).filter(ModelPrice.model == model).first()
        if price is None:
            price = ModelPrice(model=model)
            _apply(price)
            db.add(price)
        else:
            _apply(price)
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same model; update theirs instead
            db.rollback()
            price = db.query(ModelPrice).filter(ModelPrice.model == model).one()
            _apply(price)
            db.commit()
        db.refresh(price)
        logger.info(f"Upserted price for {model}: in={input_price_per_1m} cached={cached_input_price_per_1m} out={output_price_per_1m}")
        return price
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"Failed to upsert price for {model}: {e}") from e


def delete_price(db: Session, model: str) -> bool:
    """Delete the price row for an exact model string. Returns False when none existed."""
    try:
        deleted = db.query(ModelPrice).filter(ModelPrice.model == model).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"Failed to delete price for {model}: {e}") from e
    if deleted:
        logger.info(f"Deleted price for {model}")
    return bool(deleted)
