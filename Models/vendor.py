# Models/vendor.py
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base, new_id

class VendorApplication(Base):
    __tablename__ = 'vendor_applications'

    id = Column(String, primary_key=True, index=True, default=new_id)
    user_id = Column(String, ForeignKey('profiles.id'), unique=True, nullable=False, index=True)

    # Business details
    business_name = Column(String, nullable=False)
    business_email = Column(String, nullable=True)
    business_phone = Column(String, nullable=True)
    business_city = Column(String, nullable=True)
    business_description = Column(String, nullable=True)

    # pending | approved | rejected
    status = Column(String, nullable=False, default='pending')

    # Review
    reviewed_by = Column(String, ForeignKey('profiles.id'), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("Profile", foreign_keys=[user_id])
    reviewer = relationship("Profile", foreign_keys=[reviewed_by])

    def __repr__(self):
        return f"<VendorApplication {self.business_name} ({self.status})>"
