"""
Validation of upstream usage payloads into usage events.

Upstream document shape:
    {"usage": {"apis": {<route>: {"models": {<model>: {"details": [
        {"timestamp": ..., "tokens": {"input_tokens": ..., "output_tokens": ...,
         "reasoning_tokens": ..., "cached_tokens": ..., "total_tokens": ...},
         "failed": bool, ...}
    ]}}}}}}

Each detail is one request. Details that fail validation are dropped and counted.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class UsageEvent(BaseModel):
    """A validated usage event ready for storage."""
    occurred_at: datetime
    route: str = Field(min_length=1, max_length=255)
    model: str = Field(min_length=1, max_length=255)
    total_tokens: int = Field(default=0, ge=0)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    reasoning_tokens: int = Field(default=0, ge=0)
    cached_tokens: int = Field(default=0, ge=0)
    total_requests: int = Field(default=1, ge=0)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    is_error: bool = False
    raw: Optional[Dict[str, Any]] = None

    @field_validator("route", "model")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("occurred_at")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump()


@dataclass
class ParsedUsage:
    events: List[UsageEvent] = field(default_factory=list)
    skipped: int = 0


def _detail_to_event(route: str, model: str, detail: Any) -> UsageEvent:
    if not isinstance(detail, dict):
        raise ValueError("detail is not an object")
    tokens = detail.get("tokens") or {}
    if not isinstance(tokens, dict):
        raise ValueError("tokens is not an object")

    failed = bool(detail.get("failed", False))
    input_tokens = tokens.get("input_tokens", 0) or 0
    output_tokens = tokens.get("output_tokens", 0) or 0
    reasoning_tokens = tokens.get("reasoning_tokens", 0) or 0
    total_tokens = tokens.get("total_tokens") or 0
    if not total_tokens:
        total_tokens = int(input_tokens) + int(output_tokens) + int(reasoning_tokens)

    return UsageEvent(
        occurred_at=detail.get("timestamp"),
        route=route,
        model=model,
        total_tokens=total_tokens,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        reasoning_tokens=reasoning_tokens,
        cached_tokens=tokens.get("cached_tokens", 0) or 0,
        total_requests=1,
        success_count=0 if failed else 1,
        failure_count=1 if failed else 0,
        is_error=failed,
        raw={**detail, "route": route, "model": model},
    )


def parse_usage_payload(payload: Dict[str, Any]) -> ParsedUsage:
    """Flatten the upstream usage document into validated events."""
    result = ParsedUsage()
    usage = payload.get("usage") if isinstance(payload, dict) else None
    apis = usage.get("apis") if isinstance(usage, dict) else None
    if not isinstance(apis, dict):
        logger.warning("Upstream payload has no usage.apis section")
        return result

    for route, api in apis.items():
        models = api.get("models") if isinstance(api, dict) else None
        if not isinstance(models, dict):
            continue
        for model, model_usage in models.items():
            details = model_usage.get("details") if isinstance(model_usage, dict) else None
            if not isinstance(details, list):
                continue
            for detail in details:
                try:
                    result.events.append(_detail_to_event(str(route), str(model), detail))
                except (ValidationError, ValueError, TypeError) as e:
                    result.skipped += 1
                    logger.debug(f"Skipping malformed usage detail for {route}/{model}: {e}")

    if result.skipped:
        logger.warning(f"Skipped {result.skipped} malformed upstream usage details")
    return result
