"""
Pydantic схемы отзывов, обратной связи и объявлений.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from storefront.schemas.base import PartialUpdate


class ReviewCreate(BaseModel):
    product_id: str
    rating: Optional[int] = None
    title: Optional[str] = None
    comment: Optional[str] = None


class FeedbackCreate(BaseModel):
    type: Optional[str] = None
    message: Optional[str] = None
    page_url: Optional[str] = None


class FeedbackUpdate(BaseModel):
    is_resolved: Optional[bool] = None
    is_featured: Optional[bool] = None


class AnnouncementCreate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    type: str = "INFO"
    bg_color: Optional[str] = None
    text_color: Optional[str] = None
    link_url: Optional[str] = None
    link_text: Optional[str] = None
    is_active: bool = True
    priority: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AnnouncementUpdate(PartialUpdate):
    NULLABLE = ("bg_color", "text_color", "link_url", "link_text", "start_date", "end_date")
    REQUIRED_TEXT = ("title", "message")

    title: Optional[str] = None
    message: Optional[str] = None
    type: Optional[str] = None
    bg_color: Optional[str] = None
    text_color: Optional[str] = None
    link_url: Optional[str] = None
    link_text: Optional[str] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class TestimonialCreate(BaseModel):
    review_id: Optional[str] = None
