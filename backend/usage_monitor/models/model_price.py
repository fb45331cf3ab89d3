"""
Model price configuration.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime
from sqlalchemy.sql import func
from usage_monitor.core.database import Base


class ModelPrice(Base):
    """Billing rates per one million tokens, keyed by model name or wildcard pattern (e.g. "gemini-2*")."""
    __tablename__ = "model_prices"

    id = Column(Integer, primary_key=True, index=True)
    model = Column(String(255), unique=True, nullable=False, index=True)
    input_price_per_1m = Column(Numeric(12, 6), nullable=False, default=0)
    cached_input_price_per_1m = Column(Numeric(12, 6), nullable=False, default=0, server_default="0")
    output_price_per_1m = Column(Numeric(12, 6), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
