import os
import sys
import tempfile
import unittest
import uuid
from datetime import datetime, timedelta

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

_TMP = tempfile.mkdtemp(prefix="transfers-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret"
os.environ["SUPABASE_JWT_AUD"] = "authenticated"
os.environ["STORAGE_DIR"] = os.path.join(_TMP, "uploads")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = ""
os.environ["SUPABASE_ANON_KEY"] = ""
os.environ["REVALIDATE_WEBHOOK_URL"] = ""

from fastapi.testclient import TestClient
from jose import jwt

import main
from database import SessionLocal, reset_db
from Models import (
    BlogCategory, BlogPost, BlogTag, Booking, CurrencySetting, Location, Profile,
    Review, Route, Vehicle, VehicleCategory, VehicleType, VendorApplication,
)
from Services.revalidation import page_cache

# 1x1 transparent PNG
PNG_DATA_URL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def make_token(user_id: str, secret: str = "test-secret", expires_in: int = 3600) -> str:
    claims = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": datetime.utcnow() + timedelta(seconds=expires_in),
    }
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def add_profile(db, email: str, role: str, full_name: str = None) -> Profile:
    profile = Profile(email=email, role=role, full_name=full_name or email.split("@")[0])
    db.add(profile)
    db.flush()
    return profile


def add_vendor(db, user: Profile, business_name: str, status: str = "approved") -> VendorApplication:
    vendor = VendorApplication(
        user_id=user.id,
        business_name=business_name,
        business_email=user.email,
        status=status,
    )
    db.add(vendor)
    db.flush()
    return vendor


def add_vehicle_type(db, name: str = "Standard Sedan", **overrides) -> VehicleType:
    values = {"name": name, "slug": name.lower().replace(" ", "-"), "passenger_capacity": 4, "luggage_capacity": 3}
    values.update(overrides)
    vehicle_type = VehicleType(**values)
    db.add(vehicle_type)
    db.flush()
    return vehicle_type


def add_vehicle_category(db, name: str = "Economy", **overrides) -> VehicleCategory:
    category = VehicleCategory(name=name, slug=name.lower().replace(" ", "-"), **overrides)
    db.add(category)
    db.flush()
    return category


def add_location(db, name: str, city: str = None, **overrides) -> Location:
    location = Location(name=name, city=city or name, **overrides)
    db.add(location)
    db.flush()
    return location


def add_booking(db, customer_id: str, vehicle_type_id: str, **overrides) -> Booking:
    values = {
        "booking_number": f"BK-{uuid.uuid4().hex[:10].upper()}",
        "customer_id": customer_id,
        "vehicle_type_id": vehicle_type_id,
        "pickup_address": "Barcelona Airport T1",
        "dropoff_address": "Hotel Arts Barcelona",
        "pickup_datetime": datetime.utcnow() + timedelta(days=3),
        "passenger_count": 2,
        "luggage_count": 2,
        "base_price": 45.0,
        "amenities_price": 0.0,
        "total_price": 45.0,
    }
    values.update(overrides)
    booking = Booking(**values)
    db.add(booking)
    db.flush()
    return booking


def add_vehicle(db, business_id: str, vehicle_type_id: str, **overrides) -> Vehicle:
    values = {
        "business_id": business_id,
        "vehicle_type_id": vehicle_type_id,
        "make": "Toyota",
        "model": "Corolla",
        "year": 2021,
        "registration_number": f"REG-{uuid.uuid4().hex[:6].upper()}",
    }
    values.update(overrides)
    vehicle = Vehicle(**values)
    db.add(vehicle)
    db.flush()
    return vehicle


def add_blog_category(db, name: str, slug: str = None, **overrides) -> BlogCategory:
    category = BlogCategory(name=name, slug=slug or name.lower().replace(" ", "-"), **overrides)
    db.add(category)
    db.flush()
    return category


def add_blog_tag(db, name: str) -> BlogTag:
    tag = BlogTag(name=name, slug=name.lower().replace(" ", "-"))
    db.add(tag)
    db.flush()
    return tag


def add_blog_post(db, title: str, **overrides) -> BlogPost:
    tags = overrides.pop("tags", [])
    values = {"title": title, "slug": title.lower().replace(" ", "-"), "content": "Some words here"}
    values.update(overrides)
    post = BlogPost(**values)
    post.tags = tags
    db.add(post)
    db.flush()
    return post


def add_review(db, customer_id: str, rating: int, **overrides) -> Review:
    review = Review(customer_id=customer_id, rating=rating, **overrides)
    db.add(review)
    db.flush()
    return review


def add_route(db, origin: Location, destination: Location, **overrides) -> Route:
    values = {
        "route_name": f"{origin.name} to {destination.name}",
        "route_slug": f"{origin.name}-{destination.name}".lower().replace(" ", "-"),
        "origin_location_id": origin.id,
        "destination_location_id": destination.id,
    }
    values.update(overrides)
    route = Route(**values)
    db.add(route)
    db.flush()
    return route


def add_currency(db, code: str, **overrides) -> CurrencySetting:
    values = {"currency_code": code, "currency_name": code, "symbol": code}
    values.update(overrides)
    currency = CurrencySetting(**values)
    db.add(currency)
    db.flush()
    return currency


class ApiTestCase(unittest.TestCase):
    """Fresh schema per test with an admin, two approved vendors and a customer."""

    def setUp(self) -> None:
        reset_db()
        page_cache.clear()
        self.client = TestClient(main.app)
        self.db = SessionLocal()

        admin = add_profile(self.db, "admin@example.com", "admin", "Ada Admin")
        vendor_user = add_profile(self.db, "vendor@example.com", "vendor", "Vera Vendor")
        other_vendor_user = add_profile(self.db, "other@example.com", "vendor", "Otto Other")
        customer = add_profile(self.db, "customer@example.com", "customer", "Carla Customer")
        vendor = add_vendor(self.db, vendor_user, "Costa Transfers")
        other_vendor = add_vendor(self.db, other_vendor_user, "Other Transfers")
        self.db.commit()

        self.admin_id = admin.id
        self.vendor_user_id = vendor_user.id
        self.vendor_id = vendor.id
        self.other_vendor_user_id = other_vendor_user.id
        self.other_vendor_id = other_vendor.id
        self.customer_id = customer.id

        self.admin_headers = auth_headers(self.admin_id)
        self.vendor_headers = auth_headers(self.vendor_user_id)
        self.other_vendor_headers = auth_headers(self.other_vendor_user_id)
        self.customer_headers = auth_headers(self.customer_id)

    def tearDown(self) -> None:
        self.db.close()

    def fetch(self, model, row_id):
        """Re-read a row after the app committed through its own session."""
        self.db.rollback()
        return self.db.get(model, row_id)

    def snapshot(self, model, row_id) -> dict:
        row = self.fetch(model, row_id)
        return {column.name: getattr(row, column.name) for column in model.__table__.columns}

    def count(self, model) -> int:
        self.db.rollback()
        return self.db.query(model).count()
