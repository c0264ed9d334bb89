# Models/route.py
from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base, new_id

class Route(Base):
    __tablename__ = 'routes'
    __table_args__ = (
        UniqueConstraint('origin_location_id', 'destination_location_id', 'created_by',
                         name='unique_route_combination'),
    )

    # Primary identifiers
    id = Column(String, primary_key=True, index=True, default=new_id)
    route_name = Column(String, nullable=False)
    route_slug = Column(String, unique=True, nullable=False, index=True)

    # Endpoints
    origin_location_id = Column(String, ForeignKey('locations.id'), nullable=False)
    destination_location_id = Column(String, ForeignKey('locations.id'), nullable=False)

    # Trip facts
    distance_km = Column(Float, nullable=True)
    estimated_duration_minutes = Column(Integer, nullable=True)
    base_price = Column(Float, nullable=True)

    # Flags
    is_active = Column(Boolean, default=True)
    is_popular = Column(Boolean, default=False)
    is_shared = Column(Boolean, default=False)

    # Ownership: admin user id or vendor application id, told apart by created_by_type
    created_by = Column(String, nullable=True, index=True)
    created_by_type = Column(String, nullable=False, default='admin')

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    origin_location = relationship("Location", foreign_keys=[origin_location_id])
    destination_location = relationship("Location", foreign_keys=[destination_location_id])

    def __repr__(self):
        return f"<Route {self.route_slug} ({self.created_by_type})>"
