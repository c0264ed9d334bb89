# Models/vehicle.py
from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base, new_id

class VehicleCategory(Base):
    __tablename__ = 'vehicle_categories'

    id = Column(String, primary_key=True, index=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    sort_order = Column(Integer, default=999)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<VehicleCategory {self.slug}>"

class VehicleType(Base):
    __tablename__ = 'vehicle_types'

    id = Column(String, primary_key=True, index=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
    category_id = Column(String, ForeignKey('vehicle_categories.id'), nullable=True)
    passenger_capacity = Column(Integer, nullable=True)
    luggage_capacity = Column(Integer, nullable=True)
    image_url = Column(String, nullable=True)
    # Applied to zone base prices when quoting
    price_multiplier = Column(Float, default=1.0)
    business_price_multiplier = Column(Float, default=1.0)
    sort_order = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("VehicleCategory")

    def __repr__(self):
        return f"<VehicleType {self.slug}>"

class Vehicle(Base):
    __tablename__ = 'vehicles'

    # Primary identifiers
    id = Column(String, primary_key=True, index=True, default=new_id)
    registration_number = Column(String, unique=True, nullable=False, index=True)

    # Owning vendor
    business_id = Column(String, ForeignKey('vendor_applications.id'), nullable=False, index=True)

    # Vehicle details
    make = Column(String, nullable=False)
    model = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    category_id = Column(String, ForeignKey('vehicle_categories.id'), nullable=True)
    vehicle_type_id = Column(String, ForeignKey('vehicle_types.id'), nullable=False)
    # petrol | diesel | electric | hybrid
    fuel_type = Column(String, nullable=True)
    transmission = Column(String, nullable=True)
    seats = Column(Integer, nullable=True)
    luggage_capacity = Column(Integer, default=2)

    # Images
    primary_image_url = Column(String, nullable=True)
    gallery_images = Column(JSON, default=list)

    # Status
    is_available = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("VehicleCategory")
    vehicle_type = relationship("VehicleType")
    vendor = relationship("VendorApplication")

    def __repr__(self):
        return f"<Vehicle {self.make} {self.model} ({self.registration_number})>"
