# backend/schemas/product.py
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _as_float(value):
    if isinstance(value, Decimal):
        return float(value)
    return value


# Money leaves the service as a JSON number with at most 2 decimal places
MoneyOut = Annotated[float, BeforeValidator(_as_float)]


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Priced read view of a product; derived fields are computed at projection time
class ProductWithPricing(ORMBase):
    id: str
    name: str
    description: str
    original_price: MoneyOut
    effective_price: MoneyOut
    discount_amount: MoneyOut
    is_discount_active: bool
    discount_percentage: Optional[MoneyOut] = None
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None
    stock_quantity: int
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Paginated response for product listings
class ProductListPage(ORMBase):
    items: List[ProductWithPricing]
    total: int
    page: int
    page_size: int


class ProductQuery(BaseModel):
    """Filters, sorting and paging for GET /products."""
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=100)
    name: Optional[str] = None
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    sort_by: str = "created_at"
    order: Literal["asc", "desc"] = "desc"


# Range checks (price, discount window, percentage) happen in the service layer
class ProductCreate(BaseModel):
    name: str
    description: str = ""
    price: Decimal
    stock_quantity: int
    discount_percentage: Optional[Decimal] = None
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None


# Schema for partial product updates - only fields that were sent are applied
class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    stock_quantity: Optional[int] = None
    discount_percentage: Optional[Decimal] = None
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None


class ApplyDiscount(BaseModel):
    discount_percentage: Decimal
    discount_start_date: Optional[datetime] = None
    discount_end_date: Optional[datetime] = None
