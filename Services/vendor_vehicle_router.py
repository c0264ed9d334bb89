# Services/vendor_vehicle_router.py
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Literal, Optional
import logging
from database import get_db
from Services.auth import Actor, require_vendor
from Services.helpers import commit_or_raise
from Services.query import BulkIds, BulkResult, Paginated
from Services.vehicle_router import (
    AvailabilityToggle, BulkAvailability, VehicleFilters, VehicleForm, VehicleResponse,
    bulk_delete_vehicles, bulk_set_availability, create_vehicle_row, list_vehicles,
    load_vehicle, revalidate_vehicles, toggle_availability, update_vehicle_row,
)

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Vehicle not found"}})

def vendor_vehicle_filters(
    search: Optional[str] = Query(default=None, description="Matches make, model or registration number"),
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
        search=search, status=status, category_id=category_id,
        vehicle_type_id=vehicle_type_id, fuel_type=fuel_type, transmission=transmission,
        seats=seats, page=page, limit=limit
    )

@router.get("", response_model=Paginated[VehicleResponse])
async def get_my_vehicles(
    filters: VehicleFilters = Depends(vendor_vehicle_filters),
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    return list_vehicles(db, filters, owner_id=actor.vendor_id).as_dict()

@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_my_vehicle(
    vehicle_id: str,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    return load_vehicle(db, vehicle_id, owner_id=actor.vendor_id)

@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
def create_my_vehicle(
    data: VehicleForm,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    vehicle = create_vehicle_row(db, actor.vendor_id, data)

    logger.info(f"Vendor {actor.vendor_id} added vehicle {vehicle.registration_number}")
    revalidate_vehicles()
    return load_vehicle(db, vehicle.id, owner_id=actor.vendor_id)

@router.put("/{vehicle_id}", response_model=VehicleResponse)
def update_my_vehicle(
    vehicle_id: str,
    data: VehicleForm,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    vehicle = load_vehicle(db, vehicle_id, owner_id=actor.vendor_id)
    update_vehicle_row(db, vehicle, actor.vendor_id, data)

    revalidate_vehicles(vehicle_id)
    return load_vehicle(db, vehicle_id, owner_id=actor.vendor_id)

@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_my_vehicle(
    vehicle_id: str,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    vehicle = load_vehicle(db, vehicle_id, owner_id=actor.vendor_id)
    db.delete(vehicle)
    commit_or_raise(db, "Failed to delete vehicle")

    revalidate_vehicles(vehicle_id)
    return None

@router.patch("/{vehicle_id}/availability", response_model=VehicleResponse)
def toggle_my_vehicle_availability(
    vehicle_id: str,
    data: AvailabilityToggle,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    vehicle = load_vehicle(db, vehicle_id, owner_id=actor.vendor_id)
    toggle_availability(db, vehicle, data.is_available)

    revalidate_vehicles(vehicle_id)
    return load_vehicle(db, vehicle_id, owner_id=actor.vendor_id)

@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete_my_vehicles(
    data: BulkIds,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    count = bulk_delete_vehicles(db, data.ids, owner_id=actor.vendor_id)
    revalidate_vehicles()
    return {"count": count}

@router.post("/bulk-availability", response_model=BulkResult)
def bulk_availability_my_vehicles(
    data: BulkAvailability,
    actor: Actor = Depends(require_vendor),
    db: Session = Depends(get_db)
):
    count = bulk_set_availability(db, data.ids, data.is_available, owner_id=actor.vendor_id)
    revalidate_vehicles()
    return {"count": count}
