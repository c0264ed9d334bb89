# Models/profile.py
from sqlalchemy import Column, String, DateTime
from datetime import datetime
from .base import Base, new_id

class Profile(Base):
    """Account row mirrored from the hosted auth service; `role` is the role claim."""
    __tablename__ = 'profiles'

    # Primary identifiers (same id as the auth user)
    id = Column(String, primary_key=True, index=True, default=new_id)
    email = Column(String, unique=True, nullable=False, index=True)

    # Personal information
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)

    # Access
    # admin | vendor | customer
    role = Column(String, nullable=False, default='customer')
    status = Column(String, nullable=False, default='active')

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Profile {self.email} ({self.role})>"
