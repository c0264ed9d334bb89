# Services/blog_post_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy.orm import Session, joinedload, selectinload
from pydantic import BaseModel, ConfigDict, constr
from typing import List, Literal, Optional
from datetime import datetime
import logging
from Models import BlogCategory, BlogPost, BlogTag
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import blank_to_none, commit_or_raise, ensure_unique, get_or_404, now, reading_time, slugify
from Services.query import Flag, Paginated, apply_equals, apply_search, paginate
from Services import revalidation
from Services.schemas import NamedSlug, ProfileSummary
from Services.storage import upload_image

logger = logging.getLogger(__name__)

router = APIRouter(responses={404: {"description": "Post not found"}})

PostStatus = Literal['draft', 'published', 'archived']

SLUG_CONFLICT = "A post with this slug already exists"

class BlogPostBase(BaseModel):
    title: constr(min_length=1, max_length=200)
    slug: constr(max_length=200) = ""
    excerpt: Optional[str] = None
    content: Optional[str] = None
    category_id: Optional[str] = None
    status: PostStatus = 'draft'
    is_featured: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None

class BlogPostForm(BlogPostBase):
    tag_ids: List[str] = []
    image_base64: Optional[str] = None
    existing_image: Optional[str] = None

class BlogPostResponse(BlogPostBase):
    id: str
    featured_image_url: Optional[str] = None
    author_id: Optional[str] = None
    published_at: Optional[datetime] = None
    reading_time_minutes: Optional[int] = None
    view_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category: Optional[NamedSlug] = None
    author: Optional[ProfileSummary] = None
    tags: List[NamedSlug] = []

    model_config = ConfigDict(from_attributes=True)

class StatusChange(BaseModel):
    status: PostStatus

class FeaturedToggle(BaseModel):
    is_featured: Optional[bool] = None

class BlogPostFilters(BaseModel):
    search: Optional[str] = None
    category_id: Optional[str] = None
    status: Optional[str] = None
    is_featured: Flag = None
    page: int = 1
    limit: int = 10

def post_filters(
    search: Optional[str] = Query(default=None, description="Matches title or slug"),
    category_id: Optional[str] = Query(default=None),
    status: Optional[Literal['all', 'draft', 'published', 'archived']] = Query(default=None),
    is_featured: Flag = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> BlogPostFilters:
    return BlogPostFilters(
        search=search, category_id=category_id, status=status,
        is_featured=is_featured, page=page, limit=limit
    )

def resolve_published_at(new_status: str, published_at: Optional[datetime]) -> Optional[datetime]:
    """`published_at` is stamped once, on the first move into published, and kept from then on."""
    if new_status == 'published' and published_at is None:
        return now()
    return published_at

def _with_relations(query):
    return query.options(
        joinedload(BlogPost.category),
        joinedload(BlogPost.author),
        selectinload(BlogPost.tags),
    )

def list_blog_posts(db: Session, filters: BlogPostFilters):
    query = _with_relations(db.query(BlogPost))
    query = apply_search(query, [BlogPost.title, BlogPost.slug], filters.search)
    query = apply_equals(query, BlogPost.category_id, filters.category_id)
    query = apply_equals(query, BlogPost.status, filters.status)
    query = apply_equals(query, BlogPost.is_featured, filters.is_featured)
    return paginate(query, filters.page, filters.limit, [BlogPost.created_at.desc()])

def _resolve_tags(db: Session, tag_ids: List[str]) -> List[BlogTag]:
    unique_ids = list(dict.fromkeys(tag_ids))
    if not unique_ids:
        return []
    tags = db.query(BlogTag).filter(BlogTag.id.in_(unique_ids)).all()
    if len(tags) != len(unique_ids):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown tag id")
    return tags

def _post_values(db: Session, data: BlogPostForm) -> dict:
    slug = slugify(data.slug or data.title)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug is required")
    category_id = blank_to_none(data.category_id)
    if category_id and not db.query(BlogCategory.id).filter(BlogCategory.id == category_id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Category not found")
    return {
        "title": data.title.strip(),
        "slug": slug,
        "excerpt": blank_to_none(data.excerpt),
        "content": blank_to_none(data.content),
        "category_id": category_id,
        "status": data.status,
        "is_featured": data.is_featured,
        "meta_title": blank_to_none(data.meta_title),
        "meta_description": blank_to_none(data.meta_description),
        "meta_keywords": blank_to_none(data.meta_keywords),
        "reading_time_minutes": reading_time(data.content),
    }

def _revalidate(post_id: Optional[str] = None):
    paths = ["/admin/blog/posts", "/blog"]
    if post_id:
        paths.append(f"/admin/blog/posts/{post_id}/edit")
    revalidation.revalidate(*paths, tags=["blog-posts"])

def _load_post(db: Session, post_id: str) -> BlogPost:
    post = _with_relations(db.query(BlogPost)).filter(BlogPost.id == post_id).first()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post

@router.get("", response_model=Paginated[BlogPostResponse])
async def list_posts(
    filters: BlogPostFilters = Depends(post_filters),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_blog_posts(db, filters).as_dict()

@router.get("/{post_id}", response_model=BlogPostResponse)
async def get_post(
    post_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return _load_post(db, post_id)

@router.post("", response_model=BlogPostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    data: BlogPostForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    values = _post_values(db, data)
    tags = _resolve_tags(db, data.tag_ids)
    ensure_unique(db, BlogPost.slug, values["slug"], SLUG_CONFLICT)

    image_url = None
    if data.image_base64:
        image_url = upload_image("blog/posts", values["slug"], data.image_base64)

    post = BlogPost(
        **values,
        featured_image_url=image_url,
        author_id=actor.id,
        published_at=resolve_published_at(data.status, None),
    )
    post.tags = tags
    db.add(post)
    commit_or_raise(db, "Failed to create post", conflict=SLUG_CONFLICT)

    logger.info(f"Blog post created: {post.slug} ({post.status}) by {actor.id}")
    _revalidate()
    return _load_post(db, post.id)

@router.put("/{post_id}", response_model=BlogPostResponse)
def update_post(
    post_id: str,
    data: BlogPostForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    post = get_or_404(db, BlogPost, post_id, "Post")
    values = _post_values(db, data)
    tags = _resolve_tags(db, data.tag_ids)
    ensure_unique(db, BlogPost.slug, values["slug"], SLUG_CONFLICT, exclude_id=post_id)

    image_url = blank_to_none(data.existing_image)
    if data.image_base64:
        image_url = upload_image("blog/posts", values["slug"], data.image_base64)

    for field, value in values.items():
        setattr(post, field, value)
    post.featured_image_url = image_url
    post.published_at = resolve_published_at(data.status, post.published_at)
    post.tags = tags
    post.updated_at = now()

    commit_or_raise(db, "Failed to update post", conflict=SLUG_CONFLICT)

    _revalidate(post_id)
    return _load_post(db, post_id)

@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    post = get_or_404(db, BlogPost, post_id, "Post")
    db.delete(post)
    commit_or_raise(db, "Failed to delete post")

    logger.info(f"Blog post deleted: {post_id} by {actor.id}")
    _revalidate(post_id)
    return None

@router.patch("/{post_id}/status", response_model=BlogPostResponse)
def change_post_status(
    post_id: str,
    data: StatusChange,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    post = get_or_404(db, BlogPost, post_id, "Post")
    post.status = data.status
    post.published_at = resolve_published_at(data.status, post.published_at)
    post.updated_at = now()

    commit_or_raise(db, "Failed to update post status")

    _revalidate(post_id)
    return _load_post(db, post_id)

@router.patch("/{post_id}/featured", response_model=BlogPostResponse)
def toggle_post_featured(
    post_id: str,
    data: FeaturedToggle,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    post = get_or_404(db, BlogPost, post_id, "Post")
    post.is_featured = (not post.is_featured) if data.is_featured is None else data.is_featured
    post.updated_at = now()

    commit_or_raise(db, "Failed to update featured status")

    _revalidate(post_id)
    return _load_post(db, post_id)
