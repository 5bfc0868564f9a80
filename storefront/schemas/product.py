"""
Pydantic схемы товаров, коллекций и категорий.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from storefront.schemas.base import PartialUpdate


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=64)
    brand: Optional[str] = Field(None, max_length=120)
    condition: Optional[str] = Field(None, max_length=32)
    price_cents: int = Field(..., ge=0)
    compare_price_cents: Optional[int] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    category_id: Optional[str] = None
    collection_id: Optional[str] = None
    type_id: Optional[str] = None


class ProductUpdate(PartialUpdate):
    NULLABLE = (
        "description", "sku", "brand", "condition", "compare_price_cents",
        "image_url", "category_id", "collection_id", "type_id",
    )
    REQUIRED_TEXT = ("name",)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    sku: Optional[str] = Field(None, max_length=64)
    brand: Optional[str] = Field(None, max_length=120)
    condition: Optional[str] = Field(None, max_length=32)
    price_cents: Optional[int] = Field(None, ge=0)
    compare_price_cents: Optional[int] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    category_id: Optional[str] = None
    collection_id: Optional[str] = None
    type_id: Optional[str] = None


class CollectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class CollectionUpdate(PartialUpdate):
    NULLABLE = ("description", "image_url")
    REQUIRED_TEXT = ("name",)

    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = None


class CategoryUpdate(PartialUpdate):
    NULLABLE = ("description",)
    REQUIRED_TEXT = ("name",)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ProductTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category_id: str
    description: Optional[str] = None


class ProductTypeUpdate(PartialUpdate):
    NULLABLE = ("description",)
    REQUIRED_TEXT = ("name",)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None
