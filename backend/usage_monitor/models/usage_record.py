"""
Usage record model: append-only fact table of upstream usage events.
"""
from sqlalchemy import Column, Integer, BigInteger, String, Boolean, JSON, UniqueConstraint, Index
from sqlalchemy.sql import func
from usage_monitor.core.database import Base, UTCDateTime


class UsageRecord(Base):
    """One immutable usage event. Rows are never updated; only bulk reset deletes them."""
    __tablename__ = "usage_records"
    __table_args__ = (
        UniqueConstraint("occurred_at", "route", "model", name="uq_usage_records_occurred_route_model"),
        Index("ix_usage_records_occurred_at", "occurred_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    occurred_at = Column(UTCDateTime(), nullable=False)  # When the usage happened upstream
    synced_at = Column(UTCDateTime(), nullable=False, server_default=func.now())
    route = Column(String(255), nullable=False, index=True)  # API key / route identifier
    model = Column(String(255), nullable=False, index=True)  # Model name as reported upstream
    total_tokens = Column(BigInteger, nullable=False, default=0)
    input_tokens = Column(BigInteger, nullable=False, default=0)
    output_tokens = Column(BigInteger, nullable=False, default=0)
    reasoning_tokens = Column(BigInteger, nullable=False, default=0, server_default="0")
    cached_tokens = Column(BigInteger, nullable=False, default=0, server_default="0")
    total_requests = Column(Integer, nullable=False, default=1)
    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    is_error = Column(Boolean, nullable=False, default=False)
    raw = Column(JSON, nullable=True)  # Original upstream payload, kept for audit
