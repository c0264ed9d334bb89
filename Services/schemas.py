# Services/schemas.py
"""Summary shapes embedded in more than one resource response."""
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ProfileSummary(ORMModel):
    id: str
    email: str
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class VendorSummary(ORMModel):
    id: str
    business_name: str
    business_email: Optional[str] = None
    business_phone: Optional[str] = None
    business_city: Optional[str] = None


class VehicleTypeSummary(ORMModel):
    id: str
    name: str
    passenger_capacity: Optional[int] = None
    luggage_capacity: Optional[int] = None
    price_multiplier: Optional[float] = None


class LocationSummary(ORMModel):
    id: str
    name: str
    city: Optional[str] = None
    country_code: Optional[str] = None
    type: Optional[str] = None


class NamedSlug(ORMModel):
    id: str
    name: str
    slug: str
