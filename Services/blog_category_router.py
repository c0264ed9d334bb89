# Services/blog_category_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, constr
from typing import List, Optional
from datetime import datetime
import logging
from Models import BlogCategory, BlogPost
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import blank_to_none, commit_or_raise, ensure_unique, get_or_404, now, slugify
from Services.query import Flag, Paginated, apply_equals, apply_search, paginate
from Services import revalidation
from Services.schemas import NamedSlug
from Services.storage import upload_image

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Category not found"}})

CACHE_TAG = "blog-categories"
SLUG_CONFLICT = "A category with this slug already exists"

class BlogCategoryBase(BaseModel):
    name: constr(min_length=1, max_length=100)
    slug: constr(max_length=120) = ""
    description: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: bool = True

class BlogCategoryForm(BlogCategoryBase):
    image_base64: Optional[str] = None
    existing_image: Optional[str] = None

class BlogCategoryResponse(BlogCategoryBase):
    id: str
    image_url: Optional[str] = None
    post_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ActiveToggle(BaseModel):
    # Omitted value flips the current flag
    is_active: Optional[bool] = None

class BlogCategoryFilters(BaseModel):
    search: Optional[str] = None
    is_active: Flag = None
    page: int = 1
    limit: int = 10

def category_filters(
    search: Optional[str] = Query(default=None, description="Matches name or slug"),
    is_active: Flag = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> BlogCategoryFilters:
    return BlogCategoryFilters(search=search, is_active=is_active, page=page, limit=limit)

def _post_count():
    return (
        select(func.count(BlogPost.id))
        .where(BlogPost.category_id == BlogCategory.id)
        .correlate(BlogCategory)
        .scalar_subquery()
        .label("post_count")
    )

def _with_count(category: BlogCategory, count: int) -> BlogCategory:
    category.post_count = count or 0
    return category

def list_blog_categories(db: Session, filters: BlogCategoryFilters):
    query = db.query(BlogCategory, _post_count())
    query = apply_search(query, [BlogCategory.name, BlogCategory.slug], filters.search)
    query = apply_equals(query, BlogCategory.is_active, filters.is_active)

    page = paginate(
        query, filters.page, filters.limit,
        [BlogCategory.sort_order.asc().nulls_last(), BlogCategory.name.asc()]
    )
    page.items = [_with_count(category, count) for category, count in page.items]
    return page

def count_posts_in_category(db: Session, category_id: str) -> int:
    return db.query(func.count(BlogPost.id)).filter(BlogPost.category_id == category_id).scalar() or 0

def _revalidate(category_id: Optional[str] = None):
    paths = ["/admin/blog/categories", "/blog"]
    if category_id:
        paths.append(f"/admin/blog/categories/{category_id}/edit")
    revalidation.revalidate(*paths, tags=[CACHE_TAG])

def _category_values(data: BlogCategoryForm) -> dict:
    return {
        "name": data.name.strip(),
        "slug": slugify(data.slug or data.name),
        "description": blank_to_none(data.description),
        "sort_order": data.sort_order,
        "is_active": data.is_active,
    }

@router.get("", response_model=Paginated[BlogCategoryResponse])
async def list_categories(
    filters: BlogCategoryFilters = Depends(category_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_blog_categories(db, filters).as_dict()

@router.get("/all", response_model=List[NamedSlug])
async def list_active_categories(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return (
        db.query(BlogCategory)
        .filter(BlogCategory.is_active == True)
        .order_by(BlogCategory.sort_order.asc().nulls_last(), BlogCategory.name.asc())
        .all()
    )

@router.get("/{category_id}", response_model=BlogCategoryResponse)
async def get_category(
    category_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    category = get_or_404(db, BlogCategory, category_id, "Category")
    return _with_count(category, count_posts_in_category(db, category_id))

@router.post("", response_model=BlogCategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    data: BlogCategoryForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    values = _category_values(data)
    if not values["slug"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is required")
    ensure_unique(db, BlogCategory.slug, values["slug"], SLUG_CONFLICT)

    image_url = None
    if data.image_base64:
        image_url = upload_image("blog/categories", values["slug"], data.image_base64)

    category = BlogCategory(**values, image_url=image_url)
    db.add(category)
    commit_or_raise(db, "Failed to create category", conflict=SLUG_CONFLICT)
    db.refresh(category)

    logger.info(f"Blog category created: {category.slug} by {actor.id}")
    _revalidate()
    return category

@router.put("/{category_id}", response_model=BlogCategoryResponse)
def update_category(
    category_id: str,
    data: BlogCategoryForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    category = get_or_404(db, BlogCategory, category_id, "Category")
    values = _category_values(data)
    if not values["slug"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is required")
    ensure_unique(db, BlogCategory.slug, values["slug"], SLUG_CONFLICT, exclude_id=category_id)

    image_url = blank_to_none(data.existing_image)
    if data.image_base64:
        image_url = upload_image("blog/categories", values["slug"], data.image_base64)

    for field, value in values.items():
        setattr(category, field, value)
    category.image_url = image_url
    category.updated_at = now()

    commit_or_raise(db, "Failed to update category", conflict=SLUG_CONFLICT)
    db.refresh(category)

    _revalidate(category_id)
    return _with_count(category, count_posts_in_category(db, category_id))

@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    category = get_or_404(db, BlogCategory, category_id, "Category")

    in_use = count_posts_in_category(db, category_id)
    if in_use > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete category. {in_use} blog posts use this category."
        )

    db.delete(category)
    commit_or_raise(db, "Failed to delete category")

    logger.info(f"Blog category deleted: {category_id} by {actor.id}")
    _revalidate(category_id)
    return None

@router.patch("/{category_id}/status", response_model=BlogCategoryResponse)
def toggle_category_status(
    category_id: str,
    data: ActiveToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    category = get_or_404(db, BlogCategory, category_id, "Category")
    category.is_active = (not category.is_active) if data.is_active is None else data.is_active
    category.updated_at = now()

    commit_or_raise(db, "Failed to update category status")
    db.refresh(category)

    _revalidate(category_id)
    return _with_count(category, count_posts_in_category(db, category_id))
