# Services/booking_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from pydantic import BaseModel, ConfigDict
from typing import List, Literal, Optional
from datetime import date, datetime, timedelta
import csv
import io
import logging
from Models import Booking, BookingAssignment, VendorApplication
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import commit_or_raise, get_or_404, now
from Services.query import BulkResult, Paginated, apply_date_range, apply_equals, apply_search, paginate
from Services import revalidation
from Services.schemas import ProfileSummary, VehicleTypeSummary, VendorSummary

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Booking not found"}})

BookingStatus = Literal['pending', 'confirmed', 'completed', 'cancelled']
PaymentStatus = Literal['pending', 'processing', 'completed', 'failed', 'refunded']

EXPORT_LIMIT = 10000
BULK_CANCELLATION_REASON = "Bulk cancellation by admin"

class AssignmentResponse(BaseModel):
    id: str
    vendor_id: str
    status: str
    notes: Optional[str] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    vendor: Optional[VendorSummary] = None

    model_config = ConfigDict(from_attributes=True)

class BookingResponse(BaseModel):
    id: str
    booking_number: str
    customer_id: str
    vehicle_type_id: str
    pickup_address: str
    dropoff_address: str
    pickup_datetime: datetime
    passenger_count: int
    luggage_count: int
    base_price: float
    amenities_price: float
    total_price: float
    booking_status: str
    payment_status: str
    customer_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payment_error: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    customer: Optional[ProfileSummary] = None
    vehicle_type: Optional[VehicleTypeSummary] = None

    model_config = ConfigDict(from_attributes=True)

class BookingDetailResponse(BookingResponse):
    assignment: Optional[AssignmentResponse] = None

class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    cancellation_reason: Optional[str] = None

class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    payment_error: Optional[str] = None

class BulkStatusUpdate(BaseModel):
    ids: List[str]
    status: Literal['confirmed', 'cancelled']

class AssignVendorRequest(BaseModel):
    vendor_id: str
    notes: Optional[str] = None

class BookingStats(BaseModel):
    total: int
    today: int
    upcoming: int
    completed: int
    cancelled: int
    revenue: float

class BookingFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = None
    payment_status: Optional[str] = None
    vehicle_type_id: Optional[str] = None
    customer_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = 1
    limit: int = 10

def booking_filters(
    search: Optional[str] = Query(default=None, description="Matches booking number or addresses"),
    status: Optional[Literal['all', 'pending', 'confirmed', 'completed', 'cancelled']] = Query(default=None),
    payment_status: Optional[Literal['all', 'pending', 'processing', 'completed', 'failed', 'refunded']] = Query(default=None),
    vehicle_type_id: Optional[str] = Query(default=None),
    customer_id: Optional[str] = Query(default=None),
    date_from: Optional[date] = Query(default=None, description="Earliest pickup date (inclusive)"),
    date_to: Optional[date] = Query(default=None, description="Latest pickup date (inclusive)"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> BookingFilters:
    return BookingFilters(
        search=search, status=status, payment_status=payment_status,
        vehicle_type_id=vehicle_type_id, customer_id=customer_id,
        date_from=date_from, date_to=date_to, page=page, limit=limit
    )

def filtered_bookings(db: Session, filters: BookingFilters):
    query = db.query(Booking).options(
        joinedload(Booking.customer),
        joinedload(Booking.vehicle_type),
    )
    query = apply_search(
        query,
        [Booking.booking_number, Booking.pickup_address, Booking.dropoff_address],
        filters.search
    )
    query = apply_equals(query, Booking.booking_status, filters.status)
    query = apply_equals(query, Booking.payment_status, filters.payment_status)
    query = apply_equals(query, Booking.vehicle_type_id, filters.vehicle_type_id)
    query = apply_equals(query, Booking.customer_id, filters.customer_id)
    return apply_date_range(query, Booking.pickup_datetime, filters.date_from, filters.date_to)

def list_bookings(db: Session, filters: BookingFilters):
    return paginate(filtered_bookings(db, filters), filters.page, filters.limit, [Booking.created_at.desc()])

def booking_stats(db: Session) -> dict:
    current = now()
    today_start = datetime(current.year, current.month, current.day)
    today_end = today_start + timedelta(days=1)

    # Seeded TEST- bookings never count towards the dashboard
    real = db.query(Booking).filter(~Booking.booking_number.like('TEST-%'))

    revenue = (
        db.query(func.coalesce(func.sum(Booking.total_price), 0.0))
        .filter(~Booking.booking_number.like('TEST-%'))
        .filter(Booking.payment_status == 'completed')
        .scalar()
    )

    return {
        "total": real.count(),
        "today": real.filter(Booking.created_at >= today_start, Booking.created_at < today_end).count(),
        "upcoming": real.filter(Booking.booking_status == 'confirmed', Booking.pickup_datetime >= current).count(),
        "completed": real.filter(Booking.booking_status == 'completed').count(),
        "cancelled": real.filter(Booking.booking_status == 'cancelled').count(),
        "revenue": float(revenue or 0.0),
    }

EXPORT_HEADERS = [
    'Booking Number', 'Customer Name', 'Customer Email', 'Customer Phone',
    'Pickup Date', 'Pickup Time', 'Pickup Address', 'Dropoff Address',
    'Vehicle Type', 'Passengers', 'Luggage', 'Base Price', 'Amenities Price',
    'Total Price', 'Booking Status', 'Payment Status', 'Created At',
]

def bookings_to_csv(bookings: List[Booking]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(EXPORT_HEADERS)
    for booking in bookings:
        customer = booking.customer
        writer.writerow([
            booking.booking_number,
            customer.full_name or '' if customer else '',
            customer.email if customer else '',
            customer.phone or '' if customer else '',
            booking.pickup_datetime.strftime('%Y-%m-%d'),
            booking.pickup_datetime.strftime('%H:%M'),
            booking.pickup_address,
            booking.dropoff_address,
            booking.vehicle_type.name if booking.vehicle_type else '',
            booking.passenger_count,
            booking.luggage_count or 0,
            booking.base_price,
            booking.amenities_price or 0,
            booking.total_price,
            booking.booking_status,
            booking.payment_status,
            booking.created_at.strftime('%Y-%m-%d %H:%M:%S') if booking.created_at else '',
        ])
    return output.getvalue()

def _revalidate(booking_id: Optional[str] = None):
    paths = ["/admin/bookings", "/admin/dashboard"]
    if booking_id:
        paths.append(f"/admin/bookings/{booking_id}")
    revalidation.revalidate(*paths)

def _load_booking(db: Session, booking_id: str) -> Booking:
    booking = (
        db.query(Booking)
        .options(
            joinedload(Booking.customer),
            joinedload(Booking.vehicle_type),
            joinedload(Booking.assignment).joinedload(BookingAssignment.vendor),
        )
        .filter(Booking.id == booking_id)
        .first()
    )
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return booking

@router.get("", response_model=Paginated[BookingResponse])
async def get_bookings(
    filters: BookingFilters = Depends(booking_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_bookings(db, filters).as_dict()

@router.get("/stats", response_model=BookingStats)
async def get_booking_stats(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return booking_stats(db)

@router.get("/export")
async def export_bookings(
    filters: BookingFilters = Depends(booking_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    bookings = filtered_bookings(db, filters).order_by(Booking.created_at.desc()).limit(EXPORT_LIMIT).all()
    return Response(
        content=bookings_to_csv(bookings),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="bookings-{now():%Y-%m-%d}.csv"'}
    )

@router.get("/vendors", response_model=List[VendorSummary])
async def get_available_vendors(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return (
        db.query(VendorApplication)
        .filter(VendorApplication.status == 'approved')
        .order_by(VendorApplication.business_name)
        .all()
    )

@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _load_booking(db, booking_id)

@router.patch("/{booking_id}/status", response_model=BookingDetailResponse)
def update_booking_status(
    booking_id: str,
    data: BookingStatusUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    booking = _load_booking(db, booking_id)
    timestamp = now()

    booking.booking_status = data.status
    booking.updated_at = timestamp
    if data.status == 'cancelled':
        booking.cancelled_at = timestamp
        if data.cancellation_reason:
            booking.cancellation_reason = data.cancellation_reason
    if data.status == 'completed' and booking.assignment is not None:
        booking.assignment.status = 'completed'
        booking.assignment.completed_at = timestamp
        booking.assignment.updated_at = timestamp

    commit_or_raise(db, "Failed to update booking status")

    logger.info(f"Booking {booking.booking_number} -> {data.status} by {actor.id}")
    _revalidate(booking_id)
    return _load_booking(db, booking_id)

@router.patch("/{booking_id}/payment", response_model=BookingDetailResponse)
def update_payment_status(
    booking_id: str,
    data: PaymentStatusUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    booking = get_or_404(db, Booking, booking_id, "Booking")
    timestamp = now()

    booking.payment_status = data.status
    booking.updated_at = timestamp
    if data.status == 'completed':
        booking.paid_at = timestamp
    if data.status == 'failed' and data.payment_error:
        booking.payment_error = data.payment_error

    commit_or_raise(db, "Failed to update payment status")

    _revalidate(booking_id)
    return _load_booking(db, booking_id)

@router.post("/bulk-status", response_model=BulkResult)
def bulk_update_booking_status(
    data: BulkStatusUpdate,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if not data.ids:
        return {"count": 0}

    timestamp = now()
    values = {"booking_status": data.status, "updated_at": timestamp}
    if data.status == 'cancelled':
        values["cancelled_at"] = timestamp
        values["cancellation_reason"] = BULK_CANCELLATION_REASON

    count = (
        db.query(Booking)
        .filter(Booking.id.in_(data.ids))
        .update(values, synchronize_session=False)
    )
    commit_or_raise(db, "Failed to bulk update booking status")

    logger.info(f"Bulk booking status {data.status} on {count} rows by {actor.id}")
    _revalidate()
    return {"count": count}

@router.post("/{booking_id}/assign", response_model=BookingDetailResponse)
def assign_booking_to_vendor(
    booking_id: str,
    data: AssignVendorRequest,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    booking = _load_booking(db, booking_id)
    vendor = db.query(VendorApplication).filter(
        VendorApplication.id == data.vendor_id,
        VendorApplication.status == 'approved'
    ).first()
    if not vendor:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Vendor not found or not approved"
        )

    timestamp = now()
    if booking.assignment is None:
        booking.assignment = BookingAssignment(
            vendor_id=vendor.id,
            assigned_by=actor.id,
            notes=data.notes,
            assigned_at=timestamp,
        )
    else:
        booking.assignment.vendor_id = vendor.id
        booking.assignment.assigned_by = actor.id
        booking.assignment.notes = data.notes
        booking.assignment.status = 'pending'
        booking.assignment.assigned_at = timestamp
        booking.assignment.completed_at = None
        booking.assignment.updated_at = timestamp

    commit_or_raise(db, "Failed to assign booking to vendor")

    logger.info(f"Booking {booking.booking_number} assigned to vendor {vendor.id} by {actor.id}")
    _revalidate(booking_id)
    return _load_booking(db, booking_id)
