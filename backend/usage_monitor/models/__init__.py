"""
Database models.
"""
from usage_monitor.models.usage_record import UsageRecord
from usage_monitor.models.model_price import ModelPrice

__all__ = [
    "UsageRecord",
    "ModelPrice",
]
