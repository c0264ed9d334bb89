# Services/vehicle_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy.orm import Session, joinedload
from pydantic import BaseModel, ConfigDict, constr, conint
from typing import List, Literal, Optional
from datetime import datetime
import logging
from Models import Vehicle, VehicleCategory, VehicleType, VendorApplication
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import blank_to_none, commit_or_raise, ensure_unique, now
from Services.query import BulkIds, BulkResult, Paginated, apply_equals, apply_search, is_set, paginate
from Services import revalidation
from Services.schemas import ORMModel, VehicleTypeSummary, VendorSummary
from Services.storage import upload_image

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Vehicle not found"}})

FuelType = Literal['petrol', 'diesel', 'electric', 'hybrid']
Transmission = Literal['manual', 'automatic']

DEFAULT_LUGGAGE_CAPACITY = 2
REGISTRATION_CONFLICT = "A vehicle with this registration number already exists"

class VehicleBase(BaseModel):
    make: constr(min_length=1, max_length=50)
    model: constr(min_length=1, max_length=50)
    year: conint(ge=1950, le=2100)
    registration_number: constr(min_length=1, max_length=20)
    category_id: Optional[str] = None
    vehicle_type_id: constr(min_length=1)
    fuel_type: Optional[FuelType] = None
    transmission: Optional[Transmission] = None
    seats: Optional[conint(ge=1, le=60)] = None
    luggage_capacity: Optional[conint(ge=0, le=50)] = None
    is_available: bool = True

class VehicleForm(VehicleBase):
    primary_image_base64: Optional[str] = None
    gallery_images_base64: List[str] = []
    existing_primary_image: Optional[str] = None
    existing_gallery_images: List[str] = []

class AdminVehicleForm(VehicleForm):
    business_id: constr(min_length=1)

class CategorySummary(ORMModel):
    id: str
    name: str
    slug: str

class VehicleResponse(VehicleBase):
    id: str
    business_id: str
    primary_image_url: Optional[str] = None
    gallery_images: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category: Optional[CategorySummary] = None
    vehicle_type: Optional[VehicleTypeSummary] = None
    vendor: Optional[VendorSummary] = None

    model_config = ConfigDict(from_attributes=True)

class AvailabilityToggle(BaseModel):
    is_available: Optional[bool] = None

class BulkAvailability(BulkIds):
    is_available: bool

class VehicleFormOptions(BaseModel):
    categories: List[CategorySummary]
    vehicle_types: List[VehicleTypeSummary]
    vendors: List[VendorSummary]

class VehicleFilters(BaseModel):
    search: Optional[str] = None
    vendor_id: Optional[str] = None
    status: Optional[str] = None
    category_id: Optional[str] = None
    vehicle_type_id: Optional[str] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    seats: Optional[int] = None
    page: int = 1
    limit: int = 10

def vehicle_filters(
    search: Optional[str] = Query(default=None, description="Matches make, model or registration number"),
    vendor_id: Optional[str] = Query(default=None),
    status: Optional[Literal['all', 'available', 'unavailable']] = Query(default=None),
    category_id: Optional[str] = Query(default=None),
    vehicle_type_id: Optional[str] = Query(default=None),
    fuel_type: Optional[Literal['all', 'petrol', 'diesel', 'electric', 'hybrid']] = Query(default=None),
    transmission: Optional[Literal['all', 'manual', 'automatic']] = Query(default=None),
    seats: Optional[int] = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> VehicleFilters:
    return VehicleFilters(
        search=search, vendor_id=vendor_id, status=status, category_id=category_id,
        vehicle_type_id=vehicle_type_id, fuel_type=fuel_type, transmission=transmission,
        seats=seats, page=page, limit=limit
    )

def _with_relations(query):
    return query.options(
        joinedload(Vehicle.category),
        joinedload(Vehicle.vehicle_type),
        joinedload(Vehicle.vendor),
    )

def list_vehicles(db: Session, filters: VehicleFilters, owner_id: Optional[str] = None):
    """Filtered, newest-first page of vehicles; `owner_id` pins the vendor regardless of filters."""
    query = _with_relations(db.query(Vehicle))
    if owner_id is not None:
        query = query.filter(Vehicle.business_id == owner_id)
    else:
        query = apply_equals(query, Vehicle.business_id, filters.vendor_id)

    query = apply_search(query, [Vehicle.make, Vehicle.model, Vehicle.registration_number], filters.search)
    if is_set(filters.status):
        query = query.filter(Vehicle.is_available == (filters.status == 'available'))
    query = apply_equals(query, Vehicle.category_id, filters.category_id)
    query = apply_equals(query, Vehicle.vehicle_type_id, filters.vehicle_type_id)
    query = apply_equals(query, Vehicle.fuel_type, filters.fuel_type)
    query = apply_equals(query, Vehicle.transmission, filters.transmission)
    # seats=0 is treated as "no filter"
    if filters.seats:
        query = query.filter(Vehicle.seats == filters.seats)
    return paginate(query, filters.page, filters.limit, [Vehicle.created_at.desc()])

def upload_vehicle_images(owner_id: str, data: VehicleForm):
    """
    Resolve the image columns for a submitted form.

    A new primary image replaces the kept one; uploaded gallery images are
    appended after the gallery URLs the form kept.
    """
    primary = blank_to_none(data.existing_primary_image)
    gallery = [url for url in data.existing_gallery_images if url]

    folder = f"vehicles/{owner_id}"
    if data.primary_image_base64:
        primary = upload_image(folder, "primary", data.primary_image_base64)
    for index, payload in enumerate(data.gallery_images_base64):
        gallery.append(upload_image(folder, f"gallery-{index}", payload))

    return primary, gallery

def vehicle_values(db: Session, data: VehicleForm) -> dict:
    vehicle_type_id = data.vehicle_type_id.strip()
    if not db.query(VehicleType.id).filter(VehicleType.id == vehicle_type_id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Vehicle type not found")
    category_id = blank_to_none(data.category_id)
    if category_id and not db.query(VehicleCategory.id).filter(VehicleCategory.id == category_id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Vehicle category not found")

    return {
        "make": data.make.strip(),
        "model": data.model.strip(),
        "year": data.year,
        "registration_number": data.registration_number.strip().upper(),
        "category_id": category_id,
        "vehicle_type_id": vehicle_type_id,
        "fuel_type": data.fuel_type,
        "transmission": data.transmission,
        "seats": data.seats or None,
        "luggage_capacity": data.luggage_capacity or DEFAULT_LUGGAGE_CAPACITY,
        "is_available": data.is_available,
    }

def revalidate_vehicles(vehicle_id: Optional[str] = None):
    paths = ["/admin/vehicles", "/vendor/vehicles"]
    if vehicle_id:
        paths.append(f"/admin/vehicles/{vehicle_id}/edit")
    revalidation.revalidate(*paths)

def load_vehicle(db: Session, vehicle_id: str, owner_id: Optional[str] = None) -> Vehicle:
    query = _with_relations(db.query(Vehicle)).filter(Vehicle.id == vehicle_id)
    if owner_id is not None:
        query = query.filter(Vehicle.business_id == owner_id)
    vehicle = query.first()
    if not vehicle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return vehicle

def create_vehicle_row(db: Session, owner_id: str, data: VehicleForm) -> Vehicle:
    values = vehicle_values(db, data)
    ensure_unique(db, Vehicle.registration_number, values["registration_number"], REGISTRATION_CONFLICT)
    primary, gallery = upload_vehicle_images(owner_id, data)

    vehicle = Vehicle(
        **values,
        business_id=owner_id,
        primary_image_url=primary,
        gallery_images=gallery,
    )
    db.add(vehicle)
    commit_or_raise(db, "Failed to create vehicle", conflict=REGISTRATION_CONFLICT)
    return vehicle

def update_vehicle_row(db: Session, vehicle: Vehicle, owner_id: str, data: VehicleForm) -> Vehicle:
    values = vehicle_values(db, data)
    ensure_unique(db, Vehicle.registration_number, values["registration_number"], REGISTRATION_CONFLICT, exclude_id=vehicle.id)
    primary, gallery = upload_vehicle_images(owner_id, data)

    for field, value in values.items():
        setattr(vehicle, field, value)
    vehicle.business_id = owner_id
    vehicle.primary_image_url = primary
    vehicle.gallery_images = gallery
    vehicle.updated_at = now()

    commit_or_raise(db, "Failed to update vehicle", conflict=REGISTRATION_CONFLICT)
    return vehicle

def toggle_availability(db: Session, vehicle: Vehicle, value: Optional[bool]) -> Vehicle:
    vehicle.is_available = (not vehicle.is_available) if value is None else value
    vehicle.updated_at = now()
    commit_or_raise(db, "Failed to update vehicle availability")
    return vehicle

def bulk_delete_vehicles(db: Session, ids: List[str], owner_id: Optional[str] = None) -> int:
    if not ids:
        return 0
    query = db.query(Vehicle).filter(Vehicle.id.in_(ids))
    if owner_id is not None:
        query = query.filter(Vehicle.business_id == owner_id)
    count = query.delete(synchronize_session=False)
    commit_or_raise(db, "Failed to delete vehicles")
    return count

def bulk_set_availability(db: Session, ids: List[str], is_available: bool, owner_id: Optional[str] = None) -> int:
    if not ids:
        return 0
    query = db.query(Vehicle).filter(Vehicle.id.in_(ids))
    if owner_id is not None:
        query = query.filter(Vehicle.business_id == owner_id)
    count = query.update({"is_available": is_available, "updated_at": now()}, synchronize_session=False)
    commit_or_raise(db, "Failed to update vehicle availability")
    return count

def _approved_vendor(db: Session, vendor_id: str) -> VendorApplication:
    vendor = db.query(VendorApplication).filter(
        VendorApplication.id == vendor_id,
        VendorApplication.status == 'approved'
    ).first()
    if not vendor:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Vendor not found or not approved")
    return vendor

@router.get("", response_model=Paginated[VehicleResponse])
async def get_vehicles(
    filters: VehicleFilters = Depends(vehicle_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_vehicles(db, filters).as_dict()

@router.get("/options", response_model=VehicleFormOptions)
async def get_vehicle_form_options(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return {
        "categories": db.query(VehicleCategory).filter(VehicleCategory.is_active == True).order_by(VehicleCategory.name).all(),
        "vehicle_types": db.query(VehicleType).filter(VehicleType.is_active == True).order_by(VehicleType.name).all(),
        "vendors": db.query(VendorApplication).filter(VendorApplication.status == 'approved').order_by(VendorApplication.business_name).all(),
    }

@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(
    vehicle_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return load_vehicle(db, vehicle_id)

@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
def create_vehicle(
    data: AdminVehicleForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    vendor = _approved_vendor(db, data.business_id)
    vehicle = create_vehicle_row(db, vendor.id, data)

    logger.info(f"Vehicle created: {vehicle.registration_number} for vendor {vendor.id} by {actor.id}")
    revalidate_vehicles()
    return load_vehicle(db, vehicle.id)

@router.put("/{vehicle_id}", response_model=VehicleResponse)
def update_vehicle(
    vehicle_id: str,
    data: AdminVehicleForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    vehicle = load_vehicle(db, vehicle_id)
    vendor = _approved_vendor(db, data.business_id)
    update_vehicle_row(db, vehicle, vendor.id, data)

    revalidate_vehicles(vehicle_id)
    return load_vehicle(db, vehicle_id)

@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_vehicle(
    vehicle_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    vehicle = load_vehicle(db, vehicle_id)
    db.delete(vehicle)
    commit_or_raise(db, "Failed to delete vehicle")

    logger.info(f"Vehicle deleted: {vehicle_id} by {actor.id}")
    revalidate_vehicles(vehicle_id)
    return None

@router.patch("/{vehicle_id}/availability", response_model=VehicleResponse)
def toggle_vehicle_availability(
    vehicle_id: str,
    data: AvailabilityToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    toggle_availability(db, load_vehicle(db, vehicle_id), data.is_available)
    revalidate_vehicles(vehicle_id)
    return load_vehicle(db, vehicle_id)

@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete(
    data: BulkIds,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    count = bulk_delete_vehicles(db, data.ids)
    logger.info(f"Bulk vehicle delete removed {count} rows by {actor.id}")
    revalidate_vehicles()
    return {"count": count}

@router.post("/bulk-availability", response_model=BulkResult)
def bulk_availability(
    data: BulkAvailability,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    count = bulk_set_availability(db, data.ids, data.is_available)
    revalidate_vehicles()
    return {"count": count}
