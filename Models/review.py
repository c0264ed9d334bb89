# Models/review.py
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base, new_id

class Review(Base):
    __tablename__ = 'reviews'
    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='reviews_rating_range'),
    )

    id = Column(String, primary_key=True, index=True, default=new_id)
    customer_id = Column(String, ForeignKey('profiles.id'), nullable=False, index=True)
    booking_id = Column(String, ForeignKey('bookings.id'), nullable=True)

    # Review body
    rating = Column(Integer, nullable=False)
    review_text = Column(Text, nullable=True)
    route_from = Column(String, nullable=True)
    route_to = Column(String, nullable=True)

    # Moderation
    # pending | approved | rejected
    status = Column(String, nullable=False, default='pending')
    is_featured = Column(Boolean, default=False)
    admin_response = Column(Text, nullable=True)
    admin_response_at = Column(DateTime, nullable=True)
    admin_responder_id = Column(String, ForeignKey('profiles.id'), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Profile", foreign_keys=[customer_id])
    booking = relationship("Booking")

    def __repr__(self):
        return f"<Review {self.rating}* ({self.status})>"
