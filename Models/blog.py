# Models/blog.py
from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, ForeignKey, Table
from sqlalchemy.orm import relationship
from datetime import datetime
from .base import Base, new_id

# Join table; no ON DELETE CASCADE on the tag side so a used tag cannot vanish under a post
blog_post_tags = Table(
    'blog_post_tags',
    Base.metadata,
    Column('post_id', String, ForeignKey('blog_posts.id', ondelete='CASCADE'), primary_key=True),
    Column('tag_id', String, ForeignKey('blog_tags.id'), primary_key=True),
)

class BlogCategory(Base):
    __tablename__ = 'blog_categories'

    id = Column(String, primary_key=True, index=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    sort_order = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<BlogCategory {self.slug}>"

class BlogTag(Base):
    __tablename__ = 'blog_tags'

    id = Column(String, primary_key=True, index=True, default=new_id)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<BlogTag {self.slug}>"

class BlogPost(Base):
    __tablename__ = 'blog_posts'

    # Primary identifiers
    id = Column(String, primary_key=True, index=True, default=new_id)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False, index=True)

    # Content
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    featured_image_url = Column(String, nullable=True)
    category_id = Column(String, ForeignKey('blog_categories.id'), nullable=True, index=True)
    author_id = Column(String, ForeignKey('profiles.id'), nullable=True)

    # Publishing
    # draft | published | archived
    status = Column(String, nullable=False, default='draft')
    is_featured = Column(Boolean, default=False)
    published_at = Column(DateTime, nullable=True)
    reading_time_minutes = Column(Integer, default=1)
    view_count = Column(Integer, default=0)

    # SEO
    meta_title = Column(String, nullable=True)
    meta_description = Column(String, nullable=True)
    meta_keywords = Column(String, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = relationship("BlogCategory")
    author = relationship("Profile")
    tags = relationship("BlogTag", secondary=blog_post_tags, order_by="BlogTag.name")

    def __repr__(self):
        return f"<BlogPost {self.slug} ({self.status})>"
