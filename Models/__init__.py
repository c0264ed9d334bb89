# Models/__init__.py
from .base import Base, new_id
from .profile import Profile
from .vendor import VendorApplication
from .location import Location
from .vehicle import Vehicle, VehicleCategory, VehicleType
from .booking import Booking, BookingAssignment
from .blog import BlogCategory, BlogTag, BlogPost, blog_post_tags
from .review import Review
from .route import Route
from .currency import CurrencySetting

# List all models for easy access and database initialization
__all__ = [
    'Base',
    'new_id',
    'Profile',
    'VendorApplication',
    'Location',
    'Vehicle',
    'VehicleCategory',
    'VehicleType',
    'Booking',
    'BookingAssignment',
    'BlogCategory',
    'BlogTag',
    'BlogPost',
    'blog_post_tags',
    'Review',
    'Route',
    'CurrencySetting',
]
