# Services/vehicle_category_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, constr
from typing import Literal, Optional
from datetime import datetime
import logging
from Models import Vehicle, VehicleCategory, VehicleType
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import blank_to_none, commit_or_raise, ensure_unique, get_or_404, now, slugify
from Services.query import BulkIds, BulkResult, Paginated, apply_search, paginate
from Services import revalidation
from Services.storage import upload_image

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Category not found"}})

SLUG_CONFLICT = "A vehicle category with this slug already exists"
DEFAULT_SORT_ORDER = 999

SortField = Literal['name', 'sort_order', 'created_at']

class VehicleCategoryBase(BaseModel):
    name: constr(min_length=1, max_length=100)
    slug: constr(max_length=120) = ""
    description: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: bool = True

class VehicleCategoryForm(VehicleCategoryBase):
    image_base64: Optional[str] = None
    existing_image: Optional[str] = None

class VehicleCategoryResponse(VehicleCategoryBase):
    id: str
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ActiveToggle(BaseModel):
    is_active: Optional[bool] = None

class CategoryUsage(BaseModel):
    count: int

class VehicleCategoryFilters(BaseModel):
    search: Optional[str] = None
    sort_by: SortField = 'sort_order'
    sort_order: Literal['asc', 'desc'] = 'asc'
    page: int = 1
    limit: int = 10

def vehicle_category_filters(
    search: Optional[str] = Query(default=None, description="Matches name or description"),
    sort_by: SortField = Query(default='sort_order'),
    sort_order: Literal['asc', 'desc'] = Query(default='asc'),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> VehicleCategoryFilters:
    return VehicleCategoryFilters(search=search, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit)

def list_vehicle_categories(db: Session, filters: VehicleCategoryFilters):
    query = apply_search(db.query(VehicleCategory), [VehicleCategory.name, VehicleCategory.description], filters.search)
    column = getattr(VehicleCategory, filters.sort_by)
    ordering = [column.asc() if filters.sort_order == 'asc' else column.desc(), VehicleCategory.name.asc()]
    return paginate(query, filters.page, filters.limit, ordering)

def count_vehicles_in_category(db: Session, category_id: str) -> int:
    return db.query(func.count(Vehicle.id)).filter(Vehicle.category_id == category_id).scalar() or 0

def _category_values(data: VehicleCategoryForm) -> dict:
    slug = slugify(data.slug or data.name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is required")
    return {
        "name": data.name.strip(),
        "slug": slug,
        "description": blank_to_none(data.description),
        "sort_order": data.sort_order or DEFAULT_SORT_ORDER,
        "is_active": data.is_active,
    }

def _detach_types(db: Session, category_ids):
    """Vehicle types in a deleted category become uncategorized."""
    (
        db.query(VehicleType)
        .filter(VehicleType.category_id.in_(category_ids))
        .update({"category_id": None, "updated_at": now()}, synchronize_session=False)
    )

def _revalidate(category_id: Optional[str] = None):
    paths = ["/admin/vehicle-categories", "/admin/vehicles", "/vendor/vehicles"]
    if category_id:
        paths.append(f"/admin/vehicle-categories/{category_id}/edit")
    revalidation.revalidate(*paths)

@router.get("", response_model=Paginated[VehicleCategoryResponse])
async def list_categories(
    filters: VehicleCategoryFilters = Depends(vehicle_category_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_vehicle_categories(db, filters).as_dict()

@router.get("/{category_id}", response_model=VehicleCategoryResponse)
async def get_category(
    category_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return get_or_404(db, VehicleCategory, category_id, "Category")

@router.get("/{category_id}/usage", response_model=CategoryUsage)
async def get_category_usage(
    category_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    get_or_404(db, VehicleCategory, category_id, "Category")
    return {"count": count_vehicles_in_category(db, category_id)}

@router.post("", response_model=VehicleCategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    data: VehicleCategoryForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    values = _category_values(data)
    ensure_unique(db, VehicleCategory.slug, values["slug"], SLUG_CONFLICT)

    image_url = None
    if data.image_base64:
        image_url = upload_image("vehicle-categories", values["slug"], data.image_base64)

    category = VehicleCategory(**values, image_url=image_url)
    db.add(category)
    commit_or_raise(db, "Failed to create category", conflict=SLUG_CONFLICT)
    db.refresh(category)

    logger.info(f"Vehicle category created: {category.slug} by {actor.id}")
    _revalidate()
    return category

@router.put("/{category_id}", response_model=VehicleCategoryResponse)
def update_category(
    category_id: str,
    data: VehicleCategoryForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    category = get_or_404(db, VehicleCategory, category_id, "Category")
    values = _category_values(data)
    ensure_unique(db, VehicleCategory.slug, values["slug"], SLUG_CONFLICT, exclude_id=category_id)

    image_url = blank_to_none(data.existing_image)
    if data.image_base64:
        image_url = upload_image("vehicle-categories", values["slug"], data.image_base64)

    for field, value in values.items():
        setattr(category, field, value)
    category.image_url = image_url
    category.updated_at = now()

    commit_or_raise(db, "Failed to update category", conflict=SLUG_CONFLICT)
    db.refresh(category)

    _revalidate(category_id)
    return category

@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    category = get_or_404(db, VehicleCategory, category_id, "Category")

    in_use = count_vehicles_in_category(db, category_id)
    if in_use > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete category. {in_use} vehicles are using this category."
        )

    _detach_types(db, [category_id])
    db.delete(category)
    commit_or_raise(db, "Failed to delete category")

    logger.info(f"Vehicle category deleted: {category_id} by {actor.id}")
    _revalidate(category_id)
    return None

@router.post("/bulk-delete", response_model=BulkResult)
def bulk_delete_categories(
    data: BulkIds,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if not data.ids:
        return {"count": 0}

    if db.query(Vehicle.id).filter(Vehicle.category_id.in_(data.ids)).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete categories. Some categories are being used by vehicles."
        )

    _detach_types(db, data.ids)
    count = db.query(VehicleCategory).filter(VehicleCategory.id.in_(data.ids)).delete(synchronize_session=False)
    commit_or_raise(db, "Failed to delete categories")

    logger.info(f"Bulk vehicle category delete removed {count} rows by {actor.id}")
    _revalidate()
    return {"count": count}

@router.patch("/{category_id}/status", response_model=VehicleCategoryResponse)
def toggle_category_status(
    category_id: str,
    data: ActiveToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    category = get_or_404(db, VehicleCategory, category_id, "Category")
    category.is_active = (not category.is_active) if data.is_active is None else data.is_active
    category.updated_at = now()
    commit_or_raise(db, "Failed to update category status")
    db.refresh(category)

    _revalidate(category_id)
    return category
