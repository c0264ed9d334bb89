# Models/location.py
from sqlalchemy import Column, String, Float, Boolean, DateTime
from datetime import datetime
from .base import Base, new_id

class Location(Base):
    __tablename__ = 'locations'

    # Primary identifiers
    id = Column(String, primary_key=True, index=True, default=new_id)
    name = Column(String, nullable=False)

    # Place details
    city = Column(String, nullable=True)
    country_code = Column(String(2), nullable=True)
    type = Column(String, nullable=False, default='city')  # airport | city | port | station | hotel
    address = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Status
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Location {self.name} ({self.city})>"
