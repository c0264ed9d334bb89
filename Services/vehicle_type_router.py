# Services/vehicle_type_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from pydantic import BaseModel, ConfigDict, confloat, conint, constr
from typing import List, Optional
from datetime import datetime
import logging
from Models import Booking, Vehicle, VehicleCategory, VehicleType
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import blank_to_none, commit_or_raise, ensure_unique, get_or_404, now, slugify
from Services.query import Flag, Paginated, apply_equals, apply_search, paginate
from Services import revalidation
from Services.schemas import NamedSlug, VehicleTypeSummary
from Services.storage import upload_image

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Vehicle type not found"}})

SLUG_CONFLICT = "A vehicle type with this slug already exists"

class VehicleTypeBase(BaseModel):
    name: constr(min_length=1, max_length=100)
    slug: constr(max_length=120) = ""
    description: Optional[str] = None
    category_id: Optional[str] = None
    passenger_capacity: conint(ge=1, le=60)
    luggage_capacity: conint(ge=0, le=50)
    price_multiplier: Optional[confloat(gt=0)] = None
    business_price_multiplier: Optional[confloat(gt=0)] = None
    sort_order: Optional[int] = None
    is_active: bool = True

class VehicleTypeForm(VehicleTypeBase):
    image_base64: Optional[str] = None
    existing_image: Optional[str] = None

class VehicleTypeResponse(VehicleTypeBase):
    id: str
    passenger_capacity: Optional[int] = None
    luggage_capacity: Optional[int] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category: Optional[NamedSlug] = None

    model_config = ConfigDict(from_attributes=True)

class ActiveToggle(BaseModel):
    is_active: Optional[bool] = None

class VehicleTypeFilters(BaseModel):
    search: Optional[str] = None
    category_id: Optional[str] = None
    is_active: Flag = None
    page: int = 1
    limit: int = 10

def vehicle_type_filters(
    search: Optional[str] = Query(default=None, description="Matches name or slug"),
    category_id: Optional[str] = Query(default=None),
    is_active: Flag = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> VehicleTypeFilters:
    return VehicleTypeFilters(search=search, category_id=category_id, is_active=is_active, page=page, limit=limit)

ORDERING = [VehicleType.sort_order.asc().nulls_last(), VehicleType.name.asc()]

def list_vehicle_types(db: Session, filters: VehicleTypeFilters):
    query = db.query(VehicleType).options(joinedload(VehicleType.category))
    query = apply_search(query, [VehicleType.name, VehicleType.slug], filters.search)
    query = apply_equals(query, VehicleType.category_id, filters.category_id)
    query = apply_equals(query, VehicleType.is_active, filters.is_active)
    return paginate(query, filters.page, filters.limit, ORDERING)

def _vehicle_type_values(db: Session, data: VehicleTypeForm) -> dict:
    slug = slugify(data.slug or data.name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is required")
    category_id = blank_to_none(data.category_id)
    if category_id and not db.query(VehicleCategory.id).filter(VehicleCategory.id == category_id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Vehicle category not found")
    return {
        "name": data.name.strip(),
        "slug": slug,
        "description": blank_to_none(data.description),
        "category_id": category_id,
        "passenger_capacity": data.passenger_capacity,
        "luggage_capacity": data.luggage_capacity,
        "price_multiplier": data.price_multiplier or 1.0,
        "business_price_multiplier": data.business_price_multiplier or 1.0,
        "sort_order": data.sort_order,
        "is_active": data.is_active,
    }

def usage_message(db: Session, vehicle_type_id: str) -> Optional[str]:
    """Why the type cannot be deleted, or None when nothing references it."""
    vehicles = db.query(func.count(Vehicle.id)).filter(Vehicle.vehicle_type_id == vehicle_type_id).scalar() or 0
    if vehicles:
        return f"Cannot delete vehicle type. {vehicles} vehicles are using this type."
    bookings = db.query(func.count(Booking.id)).filter(Booking.vehicle_type_id == vehicle_type_id).scalar() or 0
    if bookings:
        return f"Cannot delete vehicle type. {bookings} bookings reference this type."
    return None

def _revalidate(vehicle_type_id: Optional[str] = None):
    # Vehicle forms list the active types
    paths = ["/admin/vehicle-types", "/admin/vehicles", "/vendor/vehicles"]
    if vehicle_type_id:
        paths.append(f"/admin/vehicle-types/{vehicle_type_id}/edit")
    revalidation.revalidate(*paths, tags=["vehicle-types"])

def _load_vehicle_type(db: Session, vehicle_type_id: str) -> VehicleType:
    vehicle_type = (
        db.query(VehicleType)
        .options(joinedload(VehicleType.category))
        .filter(VehicleType.id == vehicle_type_id)
        .first()
    )
    if not vehicle_type:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle type not found")
    return vehicle_type

@router.get("", response_model=Paginated[VehicleTypeResponse])
async def list_types(
    filters: VehicleTypeFilters = Depends(vehicle_type_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_vehicle_types(db, filters).as_dict()

@router.get("/active", response_model=List[VehicleTypeSummary])
async def list_active_types(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return db.query(VehicleType).filter(VehicleType.is_active == True).order_by(*ORDERING).all()

@router.get("/{vehicle_type_id}", response_model=VehicleTypeResponse)
async def get_type(
    vehicle_type_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _load_vehicle_type(db, vehicle_type_id)

@router.post("", response_model=VehicleTypeResponse, status_code=status.HTTP_201_CREATED)
def create_type(
    data: VehicleTypeForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    values = _vehicle_type_values(db, data)
    ensure_unique(db, VehicleType.slug, values["slug"], SLUG_CONFLICT)

    image_url = None
    if data.image_base64:
        image_url = upload_image("vehicle-types", values["slug"], data.image_base64)

    vehicle_type = VehicleType(**values, image_url=image_url)
    db.add(vehicle_type)
    commit_or_raise(db, "Failed to create vehicle type", conflict=SLUG_CONFLICT)

    logger.info(f"Vehicle type created: {vehicle_type.slug} by {actor.id}")
    _revalidate()
    return _load_vehicle_type(db, vehicle_type.id)

@router.put("/{vehicle_type_id}", response_model=VehicleTypeResponse)
def update_type(
    vehicle_type_id: str,
    data: VehicleTypeForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    vehicle_type = get_or_404(db, VehicleType, vehicle_type_id, "Vehicle type")
    values = _vehicle_type_values(db, data)
    ensure_unique(db, VehicleType.slug, values["slug"], SLUG_CONFLICT, exclude_id=vehicle_type_id)

    image_url = blank_to_none(data.existing_image)
    if data.image_base64:
        image_url = upload_image("vehicle-types", values["slug"], data.image_base64)

    for field, value in values.items():
        setattr(vehicle_type, field, value)
    vehicle_type.image_url = image_url
    vehicle_type.updated_at = now()

    commit_or_raise(db, "Failed to update vehicle type", conflict=SLUG_CONFLICT)

    _revalidate(vehicle_type_id)
    return _load_vehicle_type(db, vehicle_type_id)

@router.delete("/{vehicle_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_type(
    vehicle_type_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    vehicle_type = get_or_404(db, VehicleType, vehicle_type_id, "Vehicle type")

    in_use = usage_message(db, vehicle_type_id)
    if in_use:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=in_use)

    db.delete(vehicle_type)
    commit_or_raise(db, "Failed to delete vehicle type")

    logger.info(f"Vehicle type deleted: {vehicle_type_id} by {actor.id}")
    _revalidate(vehicle_type_id)
    return None

@router.patch("/{vehicle_type_id}/status", response_model=VehicleTypeResponse)
def toggle_type_status(
    vehicle_type_id: str,
    data: ActiveToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    vehicle_type = get_or_404(db, VehicleType, vehicle_type_id, "Vehicle type")
    vehicle_type.is_active = (not vehicle_type.is_active) if data.is_active is None else data.is_active
    vehicle_type.updated_at = now()
    commit_or_raise(db, "Failed to update vehicle type status")

    _revalidate(vehicle_type_id)
    return _load_vehicle_type(db, vehicle_type_id)
