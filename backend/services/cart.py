import logging
from datetime import datetime
from typing import Callable, List

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.cart import CartItem
from models.product import Product
from schemas.cart import CartItemOut, CartOut, CartProductOut
from utils import money
from utils.cache import CART_KEY, CART_PATTERN, CacheStore, cached, get_cache_store, invalidate
from utils.errors import InvalidInputError, NotFoundError
from utils.pricing import project_product, utcnow

logger = logging.getLogger(__name__)

# Conditional writes retried before giving up on a contended line
MAX_MERGE_ATTEMPTS = 3


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)):
        raise InvalidInputError("Quantity must be a positive integer")
    if isinstance(quantity, float) and not quantity.is_integer():
        raise InvalidInputError("Quantity must be a positive integer")
    if quantity <= 0:
        raise InvalidInputError("Quantity must be a positive integer")
    return int(quantity)


class CartService:
    """The shared shopping cart: merge-on-add lines and priced aggregate reads."""

    def __init__(self, db: Session, cache: CacheStore, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.cache = cache
        self.clock = clock

    def _invalidate(self) -> None:
        invalidate(self.cache, keys=[CART_KEY], patterns=[CART_PATTERN])

    def add_line(self, product_id: str, quantity) -> CartOut:
        quantity = _check_quantity(quantity)

        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found")

        stock = product.stock_quantity
        if stock < quantity:
            raise InvalidInputError(f"Insufficient stock. Available: {stock}, Requested: {quantity}")

        for _ in range(MAX_MERGE_ATTEMPTS):
            line = self.db.query(CartItem).filter(CartItem.product_id == product_id).first()

            if line is None:
                self.db.add(CartItem(product_id=product_id, quantity=quantity))
                try:
                    self.db.commit()
                except IntegrityError:
                    # another request created the line first; merge into it
                    self.db.rollback()
                    continue
                break

            merged = line.quantity + quantity
            if stock < merged:
                raise InvalidInputError(
                    f"Insufficient stock. Available: {stock}, Total requested: {merged}"
                )

            # Compare-and-set on the quantity we read
            updated = (
                self.db.query(CartItem)
                .filter(CartItem.id == line.id, CartItem.quantity == line.quantity)
                .update({CartItem.quantity: merged}, synchronize_session=False)
            )
            if updated == 0:
                self.db.rollback()
                continue
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            break
        else:
            raise InvalidInputError(
                f"Cart line for product {product_id} changed concurrently, please retry"
            )

        self._invalidate()
        logger.info("Added %s x product %s to cart", quantity, product_id)
        return self.build_cart()

    @cached(ttl=lambda: settings.CACHE_TTL_CART, key=lambda: CART_KEY, schema=CartOut)
    def get_cart(self) -> CartOut:
        return self.build_cart()

    def build_cart(self) -> CartOut:
        """Price every line against the current time and aggregate."""
        now = self.clock()
        lines: List[CartItem] = (
            self.db.query(CartItem).order_by(CartItem.created_at.desc(), CartItem.id.desc()).all()
        )

        items, line_totals, original_totals = [], [], []
        for line in lines:
            if line.product is None:
                logger.warning("Cart line %s references missing product %s", line.id, line.product_id)
                continue

            priced = project_product(line.product, now)
            original_price = priced["original_price"]
            effective_price = priced["effective_price"]

            line_total = money.line_total(line.quantity, effective_price)
            line_original_total = money.line_total(line.quantity, original_price)
            line_totals.append(line_total)
            original_totals.append(line_original_total)

            items.append(CartItemOut(
                id=line.id,
                product_id=line.product_id,
                quantity=line.quantity,
                created_at=line.created_at,
                product=CartProductOut(
                    id=priced["id"],
                    name=priced["name"],
                    description=priced["description"],
                    original_price=original_price,
                    effective_price=effective_price,
                    discount_amount=priced["discount_amount"],
                    is_discount_active=priced["is_discount_active"],
                    image_url=priced["image_url"],
                    stock_quantity=priced["stock_quantity"],
                ),
                line_total=line_total,
                line_original_total=line_original_total,
                line_savings=money.subtract(line_original_total, line_total),
            ))

        total_price = money.sum_money(line_totals)
        total_original_price = money.sum_money(original_totals)

        return CartOut(
            items=items,
            total_items=sum(it.quantity for it in items),
            total_price=total_price,
            total_original_price=total_original_price,
            # From the rounded totals, so it reconciles with the displayed lines
            total_savings=money.subtract(total_original_price, total_price),
            unique_products=len(items),
        )

    def remove_line(self, item_id: str) -> CartOut:
        line = self.db.query(CartItem).filter(CartItem.id == item_id).first()
        if not line:
            raise NotFoundError(f"Cart item with ID {item_id} not found")

        self.db.delete(line)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._invalidate()

        logger.info("Removed cart item %s", item_id)
        return self.build_cart()

    def clear(self) -> None:
        try:
            removed = self.db.query(CartItem).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._invalidate()
        logger.info("Cart cleared (%s lines)", removed)


def get_cart_service(
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
) -> CartService:
    return CartService(db, cache)
