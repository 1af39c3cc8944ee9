from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel

from schemas.product import MoneyOut

# Request schema for adding an item to the cart
# (positive-integer check is done by the cart service)
class CartAddItem(BaseModel):
    product_id: str
    quantity: Union[int, float]

# Product details embedded in a cart line
class CartProductOut(BaseModel):
    id: str
    name: str
    description: str
    original_price: MoneyOut
    effective_price: MoneyOut
    discount_amount: MoneyOut
    is_discount_active: bool
    image_url: Optional[str] = None
    stock_quantity: int

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    id: str
    product_id: str
    quantity: int
    created_at: Optional[datetime] = None
    product: CartProductOut
    line_total: MoneyOut
    line_original_total: MoneyOut
    line_savings: MoneyOut

# Response schema for the entire cart summary
class CartOut(BaseModel):
    items: List[CartItemOut]
    total_items: int
    total_price: MoneyOut
    total_original_price: MoneyOut
    total_savings: MoneyOut
    unique_products: int
