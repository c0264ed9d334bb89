# Models/booking.py
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base, new_id

class Booking(Base):
    __tablename__ = 'bookings'

    # Primary identifiers
    id = Column(String, primary_key=True, index=True, default=new_id)
    booking_number = Column(String, unique=True, nullable=False, index=True)

    # Relations
    customer_id = Column(String, ForeignKey('profiles.id'), nullable=False, index=True)
    vehicle_type_id = Column(String, ForeignKey('vehicle_types.id'), nullable=False)

    # Trip
    pickup_address = Column(String, nullable=False)
    dropoff_address = Column(String, nullable=False)
    pickup_datetime = Column(DateTime, nullable=False, index=True)
    passenger_count = Column(Integer, nullable=False, default=1)
    luggage_count = Column(Integer, nullable=False, default=0)

    # Price breakdown
    base_price = Column(Float, nullable=False, default=0.0)
    amenities_price = Column(Float, nullable=False, default=0.0)
    total_price = Column(Float, nullable=False, default=0.0)

    # Status
    # pending | confirmed | completed | cancelled
    booking_status = Column(String, nullable=False, default='pending')
    # pending | processing | completed | failed | refunded
    payment_status = Column(String, nullable=False, default='pending')
    customer_notes = Column(String, nullable=True)
    cancellation_reason = Column(String, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    payment_error = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Profile")
    vehicle_type = relationship("VehicleType")
    assignment = relationship("BookingAssignment", uselist=False, back_populates="booking",
                              cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Booking {self.booking_number} ({self.booking_status})>"

class BookingAssignment(Base):
    __tablename__ = 'booking_assignments'

    id = Column(String, primary_key=True, index=True, default=new_id)
    booking_id = Column(String, ForeignKey('bookings.id'), unique=True, nullable=False)
    vendor_id = Column(String, ForeignKey('vendor_applications.id'), nullable=False)
    assigned_by = Column(String, ForeignKey('profiles.id'), nullable=True)
    # pending | accepted | completed
    status = Column(String, nullable=False, default='pending')
    notes = Column(String, nullable=True)
    assigned_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    booking = relationship("Booking", back_populates="assignment")
    vendor = relationship("VendorApplication")
