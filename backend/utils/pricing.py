"""Discount policy and the priced read view of a product.

Nothing here touches the database or the cache. Effective price, discount
amount and the active flag are derived from the stored fields every time a
product is projected, so they always reflect the evaluation time.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from utils import money


@dataclass(frozen=True)
class DiscountResult:
    is_discount_active: bool
    effective_price: Decimal
    discount_amount: Decimal


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_discount_active(
    percentage,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> bool:
    # The percentage gates everything; an open bound never restricts.
    if percentage is None or money.to_money(percentage) <= 0:
        return False
    now = as_utc(now) or utcnow()
    start, end = as_utc(start), as_utc(end)
    start_ok = start is None or start <= now
    end_ok = end is None or end >= now
    return start_ok and end_ok


def evaluate_discount(
    price,
    percentage=None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> DiscountResult:
    original = money.to_money(price)
    if not is_discount_active(percentage, start, end, now):
        return DiscountResult(False, original, money.ZERO)

    discount_amount = money.percentage_of(original, percentage)
    effective_price = money.subtract(original, discount_amount)
    return DiscountResult(True, effective_price, discount_amount)


def project_product(product, now: Optional[datetime] = None) -> dict:
    """Build the priced representation of a stored product.

    `product` is anything with the Product column attributes (ORM row or a
    plain object in tests). The result is a plain dict ready for
    ``schemas.product.ProductWithPricing``.
    """
    result = evaluate_discount(
        product.price,
        product.discount_percentage,
        product.discount_start_date,
        product.discount_end_date,
        now,
    )
    percentage = product.discount_percentage
    return {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "original_price": money.to_money(product.price),
        "effective_price": result.effective_price,
        "discount_amount": result.discount_amount,
        "is_discount_active": result.is_discount_active,
        "discount_percentage": money.to_money(percentage) if percentage is not None else None,
        "discount_start_date": as_utc(product.discount_start_date),
        "discount_end_date": as_utc(product.discount_end_date),
        "stock_quantity": product.stock_quantity,
        "image_url": product.image_url,
        "created_at": as_utc(product.created_at),
        "updated_at": as_utc(product.updated_at),
    }
