# Services/public_router.py
"""
Unauthenticated read endpoints mirroring what the admin console publishes.

List responses are kept in the page cache under the front-end path they
back, so the revalidation calls issued by admin mutations evict them.
"""
from fastapi import APIRouter, HTTPException, Depends, Query, Request, status
from sqlalchemy.orm import Session, joinedload, selectinload
from pydantic import BaseModel, ConfigDict
from typing import List, Optional
from datetime import datetime
import logging
from Models import BlogCategory, BlogPost, BlogTag, CurrencySetting, Review, Route
from database import get_db
from Services.helpers import commit_or_raise
from Services.query import Paginated, apply_search, paginate
from Services import revalidation
from Services.schemas import LocationSummary, NamedSlug

logger = logging.getLogger(__name__)

router = APIRouter()

class PublicAuthor(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class PublicPost(BaseModel):
    id: str
    title: str
    slug: str
    excerpt: Optional[str] = None
    featured_image_url: Optional[str] = None
    is_featured: bool = False
    published_at: Optional[datetime] = None
    reading_time_minutes: Optional[int] = None
    category: Optional[NamedSlug] = None
    author: Optional[PublicAuthor] = None
    tags: List[NamedSlug] = []

    model_config = ConfigDict(from_attributes=True)

class PublicPostDetail(PublicPost):
    content: Optional[str] = None
    view_count: int = 0
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None

class PublicCategory(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class PublicReview(BaseModel):
    id: str
    rating: int
    review_text: Optional[str] = None
    route_from: Optional[str] = None
    route_to: Optional[str] = None
    is_featured: bool = False
    admin_response: Optional[str] = None
    created_at: Optional[datetime] = None
    customer: Optional[PublicAuthor] = None

    model_config = ConfigDict(from_attributes=True)

class PublicCurrency(BaseModel):
    currency_code: str
    currency_name: str
    symbol: Optional[str] = None
    exchange_rate: Optional[float] = None
    is_featured: bool = False
    is_default: bool = False

    model_config = ConfigDict(from_attributes=True)

class PublicRoute(BaseModel):
    id: str
    route_name: str
    route_slug: str
    distance_km: Optional[float] = None
    estimated_duration_minutes: Optional[int] = None
    base_price: Optional[float] = None
    origin_location: Optional[LocationSummary] = None
    destination_location: Optional[LocationSummary] = None

    model_config = ConfigDict(from_attributes=True)

def _cache_key(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path

def _published_posts(db: Session):
    return (
        db.query(BlogPost)
        .options(
            joinedload(BlogPost.category),
            joinedload(BlogPost.author),
            selectinload(BlogPost.tags),
        )
        .filter(BlogPost.status == 'published')
    )

@router.get("/blog/posts", response_model=Paginated[PublicPost])
async def get_published_posts(
    request: Request,
    category: Optional[str] = Query(default=None, description="Category slug"),
    tag: Optional[str] = Query(default=None, description="Tag slug"),
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=12, ge=1, le=50),
    db: Session = Depends(get_db)
):
    def load():
        query = _published_posts(db)
        if category:
            query = query.filter(BlogPost.category.has(BlogCategory.slug == category))
        if tag:
            query = query.filter(BlogPost.tags.any(BlogTag.slug == tag))
        query = apply_search(query, [BlogPost.title, BlogPost.excerpt], search)
        result = paginate(query, page, limit, [BlogPost.published_at.desc(), BlogPost.created_at.desc()])
        result.items = [PublicPost.model_validate(post).model_dump(mode="json") for post in result.items]
        return result.as_dict()

    return revalidation.cached("/blog", _cache_key(request), ["blog-posts"], load)

@router.get("/blog/posts/{slug}", response_model=PublicPostDetail)
async def get_published_post(
    slug: str,
    db: Session = Depends(get_db)
):
    post = _published_posts(db).filter(BlogPost.slug == slug).first()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    post.view_count = (post.view_count or 0) + 1
    commit_or_raise(db, "Failed to record post view")
    return post

@router.get("/blog/categories", response_model=List[PublicCategory])
async def get_active_categories(
    request: Request,
    db: Session = Depends(get_db)
):
    def load():
        categories = (
            db.query(BlogCategory)
            .filter(BlogCategory.is_active == True)
            .order_by(BlogCategory.sort_order.asc().nulls_last(), BlogCategory.name.asc())
            .all()
        )
        return [PublicCategory.model_validate(c).model_dump(mode="json") for c in categories]

    return revalidation.cached("/blog", _cache_key(request), ["blog-categories"], load)

@router.get("/reviews", response_model=List[PublicReview])
async def get_approved_reviews(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    def load():
        reviews = (
            db.query(Review)
            .options(joinedload(Review.customer))
            .filter(Review.status == 'approved')
            .order_by(Review.is_featured.desc(), Review.created_at.desc())
            .limit(limit)
            .all()
        )
        return [PublicReview.model_validate(r).model_dump(mode="json") for r in reviews]

    return revalidation.cached("/reviews", _cache_key(request), ["reviews"], load)

@router.get("/currencies", response_model=List[PublicCurrency])
async def get_enabled_currencies(
    request: Request,
    db: Session = Depends(get_db)
):
    def load():
        currencies = (
            db.query(CurrencySetting)
            .filter(CurrencySetting.is_enabled == True)
            .order_by(CurrencySetting.display_order.asc(), CurrencySetting.currency_code.asc())
            .all()
        )
        return [PublicCurrency.model_validate(c).model_dump(mode="json") for c in currencies]

    return revalidation.cached("/currencies", _cache_key(request), ["currencies", "exchange-rates"], load)

@router.get("/routes/popular", response_model=List[PublicRoute])
async def get_popular_routes(
    request: Request,
    limit: int = Query(default=10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    def load():
        routes = (
            db.query(Route)
            .options(joinedload(Route.origin_location), joinedload(Route.destination_location))
            .filter(Route.is_active == True, Route.is_popular == True)
            .order_by(Route.route_name.asc())
            .limit(limit)
            .all()
        )
        return [PublicRoute.model_validate(r).model_dump(mode="json") for r in routes]

    return revalidation.cached("/routes", _cache_key(request), ["routes"], load)
