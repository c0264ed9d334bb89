# Models/currency.py
from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime
from datetime import datetime
from .base import Base

class CurrencySetting(Base):
    __tablename__ = 'currency_settings'

    currency_code = Column(String(3), primary_key=True)
    currency_name = Column(String, nullable=False)
    symbol = Column(String, nullable=True)

    # Rate against the default currency
    exchange_rate = Column(Float, nullable=True)
    rates_updated_at = Column(DateTime, nullable=True)

    is_enabled = Column(Boolean, default=False)
    is_featured = Column(Boolean, default=False)
    is_default = Column(Boolean, default=False)
    display_order = Column(Integer, default=0)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<CurrencySetting {self.currency_code}>"
