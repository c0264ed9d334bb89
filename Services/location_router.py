# Services/location_router.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, constr, confloat
from typing import List, Literal, Optional
from datetime import datetime
import logging
from Models import Location
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import blank_to_none, commit_or_raise, get_or_404, now
from Services.query import Flag, Paginated, apply_equals, apply_search, paginate
from Services import revalidation

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Location not found"}})

LocationType = Literal['airport', 'city', 'port', 'station', 'hotel']

class LocationBase(BaseModel):
    """
    Base location schema with common attributes.

    Attributes:
        name: Location name (e.g., "Barcelona Airport (BCN)")
        city: City the location belongs to
        country_code: ISO 3166-1 alpha-2 code
        type: Kind of place; routes join two of them
        address: Full street address
        latitude: Geographic latitude (-90 to 90)
        longitude: Geographic longitude (-180 to 180)
    """
    name: constr(min_length=2, max_length=100)
    city: Optional[constr(max_length=100)] = None
    country_code: Optional[constr(min_length=2, max_length=2)] = None
    type: LocationType = 'city'
    address: Optional[constr(max_length=200)] = None
    latitude: Optional[confloat(ge=-90, le=90)] = None
    longitude: Optional[confloat(ge=-180, le=180)] = None

class LocationCreate(LocationBase):
    """Schema for creating a new location."""
    pass

class LocationUpdate(LocationBase):
    """
    Schema for updating an existing location.

    Extends LocationBase with optional active status.
    """
    is_active: Optional[bool] = None

class LocationResponse(LocationBase):
    """
    Schema for location responses.

    Extends LocationBase with system-managed fields.
    """
    id: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class LocationFilters(BaseModel):
    search: Optional[str] = None
    is_active: Flag = None
    type: Optional[str] = None
    page: int = 1
    limit: int = 20

def location_filters(
    search: Optional[str] = Query(default=None, description="Matches name or city"),
    is_active: Flag = Query(default=None, description="Active/inactive locations, or all"),
    type: Optional[Literal['all', 'airport', 'city', 'port', 'station', 'hotel']] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> LocationFilters:
    return LocationFilters(search=search, is_active=is_active, type=type, page=page, limit=limit)

def list_locations(db: Session, filters: LocationFilters):
    query = db.query(Location)
    query = apply_search(query, [Location.name, Location.city], filters.search)
    query = apply_equals(query, Location.is_active, filters.is_active)
    query = apply_equals(query, Location.type, filters.type)
    return paginate(query, filters.page, filters.limit, [Location.name.asc()])

def _location_values(location: LocationBase) -> dict:
    values = location.model_dump(exclude_unset=True)
    for field in ("city", "address"):
        if field in values:
            values[field] = blank_to_none(values[field])
    if values.get("country_code"):
        values["country_code"] = values["country_code"].upper()
    return values

def _revalidate():
    # Routes embed their origin and destination, public popular routes included
    revalidation.revalidate("/admin/locations", "/admin/routes", "/routes", tags=["locations", "routes"])

@router.post("",
    response_model=LocationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new location",
    description="""
    Create a new location in the system.

    Locations are the endpoints routes are drawn between.
    """
)
def create_location(
    location: LocationCreate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    db_location = Location(**_location_values(location))
    db.add(db_location)
    commit_or_raise(db, "Failed to create location", conflict="Location already exists")
    db.refresh(db_location)

    logger.info(f"Location created: {db_location.name} by {actor.id}")
    _revalidate()
    return db_location

@router.get("",
    response_model=Paginated[LocationResponse],
    summary="List locations",
    description="""
    Retrieve a page of locations with optional filtering:
    - Search by name or city
    - Filter active/inactive locations
    - Filter by location type
    """
)
async def get_locations(
    filters: LocationFilters = Depends(location_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_locations(db, filters).as_dict()

@router.get("/{location_id}",
    response_model=LocationResponse,
    summary="Get a specific location",
    description="Retrieve detailed information about a specific location by its ID.",
    responses={
        200: {
            "description": "Successful retrieval of location details"
        },
        404: {
            "description": "Location not found"
        }
    }
)
async def get_location(
    location_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Retrieve a single location by its ID."""
    return get_or_404(db, Location, location_id, "Location")

@router.put("/{location_id}",
    response_model=LocationResponse,
    summary="Update a location",
    description="""
    Update an existing location's details.
    Fields left out of the body keep their current values.
    """,
    responses={
        200: {
            "description": "Successful update of location details"
        },
        404: {
            "description": "Location not found"
        },
        409: {
            "description": "Update failed due to conflict"
        }
    }
)
def update_location(
    location_id: str,
    location: LocationUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    db_location = get_or_404(db, Location, location_id, "Location")

    for field, value in _location_values(location).items():
        if field == "is_active" and value is None:
            continue
        setattr(db_location, field, value)

    db_location.updated_at = now()

    commit_or_raise(db, "Location update failed")
    db.refresh(db_location)

    _revalidate()
    return db_location

@router.delete("/{location_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a location",
    description="""
    Soft-delete a location by marking it as inactive.
    The location record remains in the database so routes that use it keep resolving.
    """,
    responses={
        204: {
            "description": "Location successfully deleted"
        },
        404: {
            "description": "Location not found"
        }
    }
)
def delete_location(
    location_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Soft-delete a location by marking it as inactive.
    Does not remove the record from the database.
    """
    location = get_or_404(db, Location, location_id, "Location")
    location.is_active = False
    location.updated_at = now()
    commit_or_raise(db, "Failed to delete location")

    logger.info(f"Location deactivated: {location_id} by {actor.id}")
    _revalidate()
    return None
