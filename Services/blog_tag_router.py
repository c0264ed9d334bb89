# Services/blog_tag_router.py
from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, constr
from typing import Optional
from datetime import datetime
from Models import BlogTag, blog_post_tags
from database import get_db
from Services.auth import Actor, require_admin
from Services.helpers import commit_or_raise, get_or_404, now, slugify
from Services.query import Paginated, apply_search, paginate
from Services import revalidation

router = APIRouter(responses={404: {"description": "Tag not found"}})

class BlogTagForm(BaseModel):
    name: constr(min_length=1, max_length=60)

class BlogTagResponse(BaseModel):
    id: str
    name: str
    slug: str
    post_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

def _post_count():
    return (
        select(func.count(blog_post_tags.c.post_id))
        .where(blog_post_tags.c.tag_id == BlogTag.id)
        .correlate(BlogTag)
        .scalar_subquery()
        .label("post_count")
    )

def count_posts_with_tag(db: Session, tag_id: str) -> int:
    return db.query(func.count(blog_post_tags.c.post_id)).filter(blog_post_tags.c.tag_id == tag_id).scalar() or 0

def _revalidate():
    revalidation.revalidate("/admin/blog/tags", "/admin/blog/posts", "/blog", tags=["blog-tags", "blog-posts"])

def _tag_values(data: BlogTagForm) -> dict:
    name = data.name.strip()
    slug = slugify(name)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tag name must contain letters or digits")
    return {"name": name, "slug": slug}

@router.get("", response_model=Paginated[BlogTagResponse])
async def list_tags(
    search: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    query = apply_search(db.query(BlogTag, _post_count()), [BlogTag.name, BlogTag.slug], search)
    result = paginate(query, page, limit, [BlogTag.name.asc()])
    for tag, count in result.items:
        tag.post_count = count or 0
    result.items = [tag for tag, _ in result.items]
    return result.as_dict()

@router.post("", response_model=BlogTagResponse, status_code=status.HTTP_201_CREATED)
def create_tag(
    data: BlogTagForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    tag = BlogTag(**_tag_values(data))
    db.add(tag)
    commit_or_raise(db, "Failed to create tag", conflict="A tag with this name already exists")
    db.refresh(tag)

    _revalidate()
    return tag

@router.put("/{tag_id}", response_model=BlogTagResponse)
def update_tag(
    tag_id: str,
    data: BlogTagForm,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    tag = get_or_404(db, BlogTag, tag_id, "Tag")
    for field, value in _tag_values(data).items():
        setattr(tag, field, value)
    tag.updated_at = now()

    commit_or_raise(db, "Failed to update tag", conflict="A tag with this name already exists")
    db.refresh(tag)
    tag.post_count = count_posts_with_tag(db, tag_id)

    _revalidate()
    return tag

@router.delete("/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tag(
    tag_id: str,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db)
):
    tag = get_or_404(db, BlogTag, tag_id, "Tag")

    in_use = count_posts_with_tag(db, tag_id)
    if in_use > 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot delete tag. {in_use} blog posts use this tag."
        )

    db.delete(tag)
    commit_or_raise(db, "Failed to delete tag")

    _revalidate()
    return None
