# Services/vendor_application_router.py
"""
Vendor onboarding.

`router` is the admin review queue: list, stats, approve, reject, delete.
`applicant_router` lets a signed-in customer submit and edit their own
application; approval is what opens the vendor portal to them.
"""
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from pydantic import BaseModel, ConfigDict, constr
from typing import Literal, Optional
from datetime import datetime
import logging
from Models import BookingAssignment, Profile, Vehicle, VendorApplication
from database import get_db
from Services.auth import Actor, get_current_actor, require_admin
from Services.helpers import blank_to_none, commit_or_raise, get_or_404, now
from Services.query import Paginated, apply_equals, apply_search, paginate
from Services import revalidation
from Services.schemas import ProfileSummary

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Vendor application not found"}})
applicant_router = APIRouter(responses={404: {"description": "Vendor application not found"}})

ApplicationStatus = Literal['pending', 'approved', 'rejected']

DUPLICATE_APPLICATION = "You have already submitted a vendor application"

class VendorApplicationForm(BaseModel):
    business_name: constr(strip_whitespace=True, min_length=2, max_length=120)
    business_email: Optional[str] = None
    business_phone: Optional[str] = None
    business_city: Optional[str] = None
    business_description: Optional[str] = None

class AdminApplicationForm(VendorApplicationForm):
    user_id: constr(min_length=1)

class VendorApplicationResponse(VendorApplicationForm):
    id: str
    user_id: str
    status: ApplicationStatus
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[ProfileSummary] = None
    reviewer: Optional[ProfileSummary] = None

    model_config = ConfigDict(from_attributes=True)

class RejectionForm(BaseModel):
    reason: constr(strip_whitespace=True, min_length=1)

class ApplicationStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int

class VendorApplicationFilters(BaseModel):
    search: Optional[str] = None
    status: Optional[str] = None
    page: int = 1
    limit: int = 10

def application_filters(
    search: Optional[str] = Query(default=None, description="Matches business name or email"),
    status: Optional[Literal['all', 'pending', 'approved', 'rejected']] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> VendorApplicationFilters:
    return VendorApplicationFilters(search=search, status=status, page=page, limit=limit)

def _with_people(query):
    return query.options(joinedload(VendorApplication.user), joinedload(VendorApplication.reviewer))

def list_applications(db: Session, filters: VendorApplicationFilters):
    query = _with_people(db.query(VendorApplication))
    query = apply_search(query, [VendorApplication.business_name, VendorApplication.business_email], filters.search)
    query = apply_equals(query, VendorApplication.status, filters.status)
    return paginate(query, filters.page, filters.limit, [VendorApplication.created_at.desc()])

def application_stats(db: Session) -> dict:
    counts = dict(
        db.query(VendorApplication.status, func.count(VendorApplication.id))
        .group_by(VendorApplication.status)
        .all()
    )
    return {
        "total": sum(counts.values()),
        "pending": counts.get('pending', 0),
        "approved": counts.get('approved', 0),
        "rejected": counts.get('rejected', 0),
    }

def _application_values(data: VendorApplicationForm) -> dict:
    return {
        "business_name": data.business_name,
        "business_email": blank_to_none(data.business_email),
        "business_phone": blank_to_none(data.business_phone),
        "business_city": blank_to_none(data.business_city),
        "business_description": blank_to_none(data.business_description),
    }

def _load_application(db: Session, application_id: str) -> VendorApplication:
    application = _with_people(db.query(VendorApplication)).filter(VendorApplication.id == application_id).first()
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor application not found")
    return application

def _own_application(db: Session, actor: Actor) -> VendorApplication:
    application = _with_people(db.query(VendorApplication)).filter(VendorApplication.user_id == actor.id).first()
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor application not found")
    return application

def _revalidate(application_id: Optional[str] = None):
    paths = ["/admin/vendor-applications", "/admin/bookings"]
    if application_id:
        paths.append(f"/admin/vendor-applications/{application_id}")
    revalidation.revalidate(*paths)

def review(db: Session, application: VendorApplication, actor: Actor, new_status: str,
           reason: Optional[str] = None) -> VendorApplication:
    application.status = new_status
    application.reviewed_by = actor.id
    application.reviewed_at = now()
    application.rejection_reason = reason
    application.updated_at = application.reviewed_at

    # Approval opens the vendor portal; admins keep their own role
    if new_status == 'approved':
        applicant = db.query(Profile).filter(Profile.id == application.user_id).first()
        if applicant and applicant.role == 'customer':
            applicant.role = 'vendor'
            applicant.updated_at = application.reviewed_at

    commit_or_raise(db, "Failed to review vendor application")
    return application

def usage_message(db: Session, application_id: str) -> Optional[str]:
    vehicles = db.query(func.count(Vehicle.id)).filter(Vehicle.business_id == application_id).scalar() or 0
    if vehicles:
        return f"Cannot delete vendor application. {vehicles} vehicles belong to this vendor."
    assignments = (
        db.query(func.count(BookingAssignment.id))
        .filter(BookingAssignment.vendor_id == application_id)
        .scalar() or 0
    )
    if assignments:
        return f"Cannot delete vendor application. {assignments} bookings are assigned to this vendor."
    return None

@router.get("", response_model=Paginated[VendorApplicationResponse])
async def get_applications(
    filters: VendorApplicationFilters = Depends(application_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_applications(db, filters).as_dict()

@router.get("/stats", response_model=ApplicationStats)
async def get_application_stats(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return application_stats(db)

@router.get("/{application_id}", response_model=VendorApplicationResponse)
async def get_application(
    application_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _load_application(db, application_id)

@router.post("", response_model=VendorApplicationResponse, status_code=status.HTTP_201_CREATED)
def create_application(
    data: AdminApplicationForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Register a business profile on behalf of an existing user; it still goes through review."""
    get_or_404(db, Profile, data.user_id, "User")
    application = VendorApplication(**_application_values(data), user_id=data.user_id)
    db.add(application)
    commit_or_raise(db, "Failed to create vendor application",
                    conflict="This user already has a vendor application")

    logger.info(f"Vendor application created for {data.user_id} by {actor.id}")
    _revalidate()
    return _load_application(db, application.id)

@router.post("/{application_id}/approve", response_model=VendorApplicationResponse)
def approve_application(
    application_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    review(db, get_or_404(db, VendorApplication, application_id, "Vendor application"), actor, 'approved')
    logger.info(f"Vendor application {application_id} approved by {actor.id}")
    _revalidate(application_id)
    return _load_application(db, application_id)

@router.post("/{application_id}/reject", response_model=VendorApplicationResponse)
def reject_application(
    application_id: str,
    data: RejectionForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    application = get_or_404(db, VendorApplication, application_id, "Vendor application")
    review(db, application, actor, 'rejected', reason=data.reason)
    logger.info(f"Vendor application {application_id} rejected by {actor.id}")
    _revalidate(application_id)
    return _load_application(db, application_id)

@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_application(
    application_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    application = get_or_404(db, VendorApplication, application_id, "Vendor application")

    in_use = usage_message(db, application_id)
    if in_use:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=in_use)

    db.delete(application)
    commit_or_raise(db, "Failed to delete vendor application")

    logger.info(f"Vendor application deleted: {application_id} by {actor.id}")
    _revalidate(application_id)
    return None

@applicant_router.get("", response_model=VendorApplicationResponse)
async def get_my_application(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    return _own_application(db, actor)

@applicant_router.post("", response_model=VendorApplicationResponse, status_code=status.HTTP_201_CREATED)
def submit_application(
    data: VendorApplicationForm,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    if db.query(VendorApplication.id).filter(VendorApplication.user_id == actor.id).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_APPLICATION)

    application = VendorApplication(**_application_values(data), user_id=actor.id)
    db.add(application)
    commit_or_raise(db, "Failed to submit vendor application", conflict=DUPLICATE_APPLICATION)

    logger.info(f"Vendor application submitted by {actor.id}")
    _revalidate()
    return _own_application(db, actor)

@applicant_router.put("", response_model=VendorApplicationResponse)
def update_my_application(
    data: VendorApplicationForm,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    application = _own_application(db, actor)
    if application.status == 'approved':
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An approved application can no longer be edited"
        )

    for field, value in _application_values(data).items():
        setattr(application, field, value)
    # An edited rejection goes back into the review queue
    application.status = 'pending'
    application.rejection_reason = None
    application.updated_at = now()
    commit_or_raise(db, "Failed to update vendor application")

    _revalidate(application.id)
    return _own_application(db, actor)
