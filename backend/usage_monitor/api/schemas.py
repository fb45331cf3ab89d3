"""
Response and request models shared by the API routers.

Field names are snake_case in Python and camelCase on the wire.
"""
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Overview
class ModelUsageResponse(CamelModel):
    model: str
    requests: int
    tokens: int
    input_tokens: int
    output_tokens: int
    cached_tokens: int
    cost: float


class RouteUsageResponse(CamelModel):
    route: str
    requests: int
    tokens: int
    input_tokens: int
    output_tokens: int
    cached_tokens: int
    cost: float


class DayPointResponse(CamelModel):
    label: str
    requests: int
    tokens: int
    cost: float


class HourPointResponse(CamelModel):
    label: str
    timestamp: str
    requests: int
    tokens: int
    input_tokens: int
    output_tokens: int
    reasoning_tokens: int
    cached_tokens: int


class UsageOverviewResponse(CamelModel):
    total_requests: int
    total_tokens: int
    total_input_tokens: int
    total_output_tokens: int
    total_reasoning_tokens: int
    total_cached_tokens: int
    success_count: int
    failure_count: int
    success_rate: float
    total_cost: float
    models: List[ModelUsageResponse]
    by_day: List[DayPointResponse]
    by_hour: List[HourPointResponse]


class OverviewMetaResponse(CamelModel):
    page: int
    page_size: int
    total_models: int
    total_pages: int


class FilterOptionsResponse(CamelModel):
    models: List[str]
    routes: List[str]


class RouteTokenSeriesResponse(CamelModel):
    routes: List[str]
    by_day: List[Dict[str, Union[int, str]]]
    by_hour: List[Dict[str, Union[int, str]]]


class OverviewResponse(CamelModel):
    overview: UsageOverviewResponse
    empty: bool
    days: int
    meta: OverviewMetaResponse
    filters: FilterOptionsResponse
    top_routes: List[RouteUsageResponse]
    tokens_by_route: RouteTokenSeriesResponse
    timezone: str


# Explore
class ExplorePointResponse(CamelModel):
    ts: int
    tokens: int
    input_tokens: int
    output_tokens: int
    reasoning_tokens: int
    cached_tokens: int
    model: str


class ExploreResponse(CamelModel):
    days: int
    total: int
    returned: int
    step: int
    points: List[ExplorePointResponse]


# Sync / reset
class SyncResponse(CamelModel):
    attempted: int
    inserted: int
    skipped: int = 0


class ResetResponse(CamelModel):
    success: bool
    deleted: int


# Prices
class ModelPriceResponse(CamelModel):
    model: str
    input_price_per_1m: float = Field(alias="inputPricePer1M")
    cached_input_price_per_1m: float = Field(alias="cachedInputPricePer1M")
    output_price_per_1m: float = Field(alias="outputPricePer1M")


class ModelPriceRequest(CamelModel):
    model: str = Field(min_length=1, max_length=255)
    input_price_per_1m: Decimal = Field(ge=0, alias="inputPricePer1M")
    cached_input_price_per_1m: Decimal = Field(default=Decimal(0), ge=0, alias="cachedInputPricePer1M")
    output_price_per_1m: Decimal = Field(ge=0, alias="outputPricePer1M")

    @field_validator("model")
    @classmethod
    def strip_model(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("model must not be blank")
        return value


class ModelPriceDeleteRequest(CamelModel):
    model: str = Field(min_length=1, max_length=255)


class SuccessResponse(CamelModel):
    success: bool = True


# Upstream settings
class UsageStatisticsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = Field(serialization_alias="usage-statistics-enabled")


class UsageStatisticsRequest(BaseModel):
    value: bool


# Upstream logs
class LogsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lines: List[str] = []
    line_count: int = Field(0, alias="line-count")
    latest_timestamp: Optional[int] = Field(None, alias="latest-timestamp")


class ErrorLogFile(BaseModel):
    name: str
    size: Optional[int] = None
    modified: Optional[int] = None


class ErrorLogListResponse(BaseModel):
    files: List[ErrorLogFile]


class ManagementUrlResponse(BaseModel):
    url: Optional[str] = None


# Health
class HealthResponse(BaseModel):
    status: str
    timezone: str
