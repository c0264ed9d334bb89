# Services/review_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from pydantic import BaseModel, ConfigDict, constr
from typing import Literal, Optional
from datetime import datetime
import logging
from Models import Review
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import commit_or_raise, get_or_404, now
from Services.query import BulkIds, BulkResult, Paginated, apply_equals, apply_search, paginate
from Services import revalidation
from Services.schemas import ProfileSummary

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Review not found"}})

RatingRange = Literal['all', '5', '4-5', '1-3']
SortBy = Literal['newest', 'oldest', 'highest', 'lowest']

SORT_ORDERS = {
    'newest': [Review.created_at.desc()],
    'oldest': [Review.created_at.asc()],
    'highest': [Review.rating.desc(), Review.created_at.desc()],
    'lowest': [Review.rating.asc(), Review.created_at.desc()],
}

class ReviewResponse(BaseModel):
    id: str
    customer_id: str
    booking_id: Optional[str] = None
    rating: int
    review_text: Optional[str] = None
    route_from: Optional[str] = None
    route_to: Optional[str] = None
    status: str
    is_featured: bool = False
    admin_response: Optional[str] = None
    admin_response_at: Optional[datetime] = None
    admin_responder_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    customer: Optional[ProfileSummary] = None

    model_config = ConfigDict(from_attributes=True)

class ReviewStats(BaseModel):
    pending: int
    total: int
    average_rating: float

class FeaturedToggle(BaseModel):
    is_featured: Optional[bool] = None

class AdminResponseForm(BaseModel):
    response: constr(strip_whitespace=True, min_length=1, max_length=2000)

class ReviewFilters(BaseModel):
    status: Optional[str] = None
    rating_range: Optional[str] = None
    search: Optional[str] = None
    sort_by: SortBy = 'newest'
    page: int = 1
    limit: int = 20

def review_filters(
    status: Optional[Literal['all', 'pending', 'approved', 'rejected']] = Query(default=None),
    rating_range: Optional[RatingRange] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Matches review text or route endpoints"),
    sort_by: SortBy = Query(default='newest'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
) -> ReviewFilters:
    return ReviewFilters(
        status=status, rating_range=rating_range, search=search,
        sort_by=sort_by, page=page, limit=limit
    )

def apply_rating_range(query, rating_range: Optional[str]):
    if rating_range == '5':
        return query.filter(Review.rating == 5)
    if rating_range == '4-5':
        return query.filter(Review.rating >= 4)
    if rating_range == '1-3':
        return query.filter(Review.rating <= 3)
    return query

def list_reviews(db: Session, filters: ReviewFilters):
    query = db.query(Review).options(joinedload(Review.customer))
    query = apply_equals(query, Review.status, filters.status)
    query = apply_rating_range(query, filters.rating_range)
    query = apply_search(query, [Review.review_text, Review.route_from, Review.route_to], filters.search)
    return paginate(query, filters.page, filters.limit, SORT_ORDERS[filters.sort_by])

def review_stats(db: Session) -> dict:
    pending = db.query(func.count(Review.id)).filter(Review.status == 'pending').scalar() or 0
    total, average = (
        db.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.status == 'approved')
        .one()
    )
    return {
        "pending": pending,
        "total": total or 0,
        "average_rating": round(float(average or 0), 2),
    }

def _revalidate(review_id: Optional[str] = None):
    paths = ["/admin/reviews", "/reviews", "/"]
    if review_id:
        paths.append(f"/admin/reviews/{review_id}")
    revalidation.revalidate(*paths, tags=["reviews"])

def _load_review(db: Session, review_id: str) -> Review:
    review = (
        db.query(Review)
        .options(joinedload(Review.customer))
        .filter(Review.id == review_id)
        .first()
    )
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return review

def _set_status(db: Session, review_id: str, new_status: str, actor: Actor) -> Review:
    review = get_or_404(db, Review, review_id, "Review")
    review.status = new_status
    review.updated_at = now()
    commit_or_raise(db, f"Failed to mark review {new_status}")

    logger.info(f"Review {review_id} -> {new_status} by {actor.id}")
    _revalidate(review_id)
    return _load_review(db, review_id)

def _bulk_set_status(db: Session, ids, new_status: str) -> int:
    if not ids:
        return 0
    count = (
        db.query(Review)
        .filter(Review.id.in_(ids))
        .update({"status": new_status, "updated_at": now()}, synchronize_session=False)
    )
    commit_or_raise(db, f"Failed to mark reviews {new_status}")
    _revalidate()
    return count

@router.get("", response_model=Paginated[ReviewResponse])
async def get_reviews(
    filters: ReviewFilters = Depends(review_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_reviews(db, filters).as_dict()

@router.get("/stats", response_model=ReviewStats)
async def get_review_stats(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return review_stats(db)

@router.get("/{review_id}", response_model=ReviewResponse)
async def get_review(
    review_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _load_review(db, review_id)

@router.post("/{review_id}/approve", response_model=ReviewResponse)
def approve_review(
    review_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _set_status(db, review_id, 'approved', actor)

@router.post("/{review_id}/reject", response_model=ReviewResponse)
def reject_review(
    review_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _set_status(db, review_id, 'rejected', actor)

@router.patch("/{review_id}/featured", response_model=ReviewResponse)
def toggle_featured_review(
    review_id: str,
    data: FeaturedToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    review = get_or_404(db, Review, review_id, "Review")
    review.is_featured = (not review.is_featured) if data.is_featured is None else data.is_featured
    review.updated_at = now()
    commit_or_raise(db, "Failed to update featured status")

    _revalidate(review_id)
    return _load_review(db, review_id)

@router.put("/{review_id}/response", response_model=ReviewResponse)
def save_admin_response(
    review_id: str,
    data: AdminResponseForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Add or replace the admin response; the responder and time are recorded each time."""
    review = get_or_404(db, Review, review_id, "Review")
    timestamp = now()
    review.admin_response = data.response
    review.admin_response_at = timestamp
    review.admin_responder_id = actor.id
    review.updated_at = timestamp
    commit_or_raise(db, "Failed to save admin response")

    _revalidate(review_id)
    return _load_review(db, review_id)

@router.delete("/{review_id}/response", response_model=ReviewResponse)
def delete_admin_response(
    review_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    review = get_or_404(db, Review, review_id, "Review")
    review.admin_response = None
    review.admin_response_at = None
    review.admin_responder_id = None
    review.updated_at = now()
    commit_or_raise(db, "Failed to delete admin response")

    _revalidate(review_id)
    return _load_review(db, review_id)

@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    review = get_or_404(db, Review, review_id, "Review")
    db.delete(review)
    commit_or_raise(db, "Failed to delete review")

    logger.info(f"Review deleted: {review_id} by {actor.id}")
    _revalidate(review_id)
    return None

@router.post("/bulk-approve", response_model=BulkResult)
def bulk_approve_reviews(
    data: BulkIds,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return {"count": _bulk_set_status(db, data.ids, 'approved')}

@router.post("/bulk-reject", response_model=BulkResult)
def bulk_reject_reviews(
    data: BulkIds,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return {"count": _bulk_set_status(db, data.ids, 'rejected')}

@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete_reviews(
    data: BulkIds,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if not data.ids:
        return {"count": 0}
    count = db.query(Review).filter(Review.id.in_(data.ids)).delete(synchronize_session=False)
    commit_or_raise(db, "Failed to delete reviews")

    logger.info(f"Bulk review delete removed {count} rows by {actor.id}")
    _revalidate()
    return {"count": count}
