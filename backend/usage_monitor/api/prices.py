"""
Model price configuration API endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from usage_monitor.api.dependencies import get_response_cache
from usage_monitor.api.schemas import (
    ModelPriceDeleteRequest,
    ModelPriceRequest,
    ModelPriceResponse,
    SuccessResponse,
)
from usage_monitor.core.auth import require_dashboard_access
from usage_monitor.core.database import get_db
from usage_monitor.models.model_price import ModelPrice
from usage_monitor.services.cache import safe_clear
from usage_monitor.services.pricing import delete_price, list_prices, upsert_price

router = APIRouter(dependencies=[Depends(require_dashboard_access)])


def _to_response(price: ModelPrice) -> ModelPriceResponse:
    return ModelPriceResponse(
        model=price.model,
        input_price_per_1m=float(price.input_price_per_1m or 0),
        cached_input_price_per_1m=float(price.cached_input_price_per_1m or 0),
        output_price_per_1m=float(price.output_price_per_1m or 0),
    )


@router.get("", response_model=List[ModelPriceResponse])
def list_prices_endpoint(db: Session = Depends(get_db)):
    """All configured prices, ordered by model."""
    return [_to_response(price) for price in list_prices(db)]


@router.post("", response_model=ModelPriceResponse)
@router.put("", response_model=ModelPriceResponse)
def upsert_price_endpoint(
    payload: ModelPriceRequest,
    db: Session = Depends(get_db),
    cache=Depends(get_response_cache),
):
    """Insert or replace the price for an exact model name or pattern."""
    price = upsert_price(
        db,
        model=payload.model,
        input_price_per_1m=payload.input_price_per_1m,
        output_price_per_1m=payload.output_price_per_1m,
        cached_input_price_per_1m=payload.cached_input_price_per_1m,
    )
    # Costs in cached responses were computed with the old table
    safe_clear(cache)
    return _to_response(price)


@router.delete("", response_model=SuccessResponse)
def delete_price_endpoint(
    payload: ModelPriceDeleteRequest,
    db: Session = Depends(get_db),
    cache=Depends(get_response_cache),
):
    if not delete_price(db, payload.model):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No price configured for '{payload.model}'"
        )
    safe_clear(cache)
    return SuccessResponse()
