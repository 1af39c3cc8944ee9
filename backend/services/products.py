import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.product import Product
from schemas.product import (
    ApplyDiscount,
    ProductCreate,
    ProductListPage,
    ProductQuery,
    ProductUpdate,
    ProductWithPricing,
)
from utils import money
from utils.cache import (
    CART_PATTERN,
    PRODUCTS_LIST_PATTERN,
    PRODUCTS_LIST_PREFIX,
    CacheStore,
    cached,
    get_cache_store,
    invalidate,
    product_key,
    request_cache_key,
)
from utils.errors import BlobStorageError, InvalidInputError, NotFoundError
from utils.pricing import as_utc, project_product, utcnow
from utils.storage import LocalBlobStore, get_blob_store
from utils.validators import ImageUpload

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "products"

# Largest value products.price (Numeric(10, 2)) can hold
MAX_PRICE = Decimal("99999999.99")

SORTABLE = {
    "created_at": Product.created_at,
    "name": Product.name,
    "price": Product.price,
    "stock_quantity": Product.stock_quantity,
}


def _list_key(query: ProductQuery) -> str:
    return request_cache_key(PRODUCTS_LIST_PREFIX, "GET", "/products", query=query.model_dump(mode="json"))


def _escape_like(text: str) -> str:
    # % and _ in a search term match literally
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---- validation helpers ----
def _check_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise InvalidInputError("Product name is required")
    return name.strip()

def _check_price(price) -> Decimal:
    amount = money.parse_amount(price)
    if amount is None:
        raise InvalidInputError("Price must be a valid positive number")
    if amount > MAX_PRICE:
        raise InvalidInputError(f"Price must not exceed {MAX_PRICE}")
    return money.to_money(amount)

def _check_stock(stock) -> int:
    if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
        raise InvalidInputError("Stock quantity must be a non-negative integer")
    return stock

def _check_percentage(percentage, allow_zero: bool = True) -> Decimal:
    amount = money.parse_amount(percentage)
    valid = amount is not None and amount <= 100
    if valid and not allow_zero:
        valid = money.to_money(amount) > 0
    if not valid:
        raise InvalidInputError("Discount percentage must be between 0 and 100")
    return money.to_money(percentage)

def _check_window(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and as_utc(end) <= as_utc(start):
        raise InvalidInputError("Discount end date must be after start date")


class ProductService:
    """Product CRUD, discounts and image handling over the database, cache and blob store."""

    def __init__(
        self,
        db: Session,
        cache: CacheStore,
        blobs: LocalBlobStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.cache = cache
        self.blobs = blobs
        self.clock = clock

    # ---- helpers ----
    def _project(self, product: Product) -> ProductWithPricing:
        return ProductWithPricing.model_validate(project_product(product, self.clock()))

    def get_entity(self, product_id: str) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    def _invalidate(self, product_id: Optional[str] = None) -> None:
        # Cart lines embed product pricing, so the cart aggregate goes too
        keys = [product_key(product_id)] if product_id else []
        invalidate(self.cache, keys=keys, patterns=[PRODUCTS_LIST_PATTERN, CART_PATTERN])

    def _upload(self, image: ImageUpload) -> str:
        try:
            return self.blobs.upload(image.data, image.content_type, IMAGE_FOLDER, image.filename)
        except BlobStorageError as e:
            raise InvalidInputError(f"Failed to upload image: {e}") from e

    def _commit(self, product: Product, new_blob: Optional[str] = None) -> None:
        try:
            self.db.commit()
            self.db.refresh(product)
        except SQLAlchemyError:
            self.db.rollback()
            if new_blob:
                self.blobs.delete(new_blob)
            raise

    # ---- operations ----
    def create(self, data: ProductCreate, image: Optional[ImageUpload] = None) -> ProductWithPricing:
        name = _check_name(data.name)
        price = _check_price(data.price)
        stock = _check_stock(data.stock_quantity)
        percentage = None
        if data.discount_percentage is not None:
            percentage = _check_percentage(data.discount_percentage)
        _check_window(data.discount_start_date, data.discount_end_date)

        # Upload first: a failed upload must not leave a product behind
        image_url = self._upload(image) if image else None

        product = Product(
            name=name,
            description=data.description or "",
            price=price,
            stock_quantity=stock,
            image_url=image_url,
            discount_percentage=percentage,
            discount_start_date=as_utc(data.discount_start_date),
            discount_end_date=as_utc(data.discount_end_date),
        )
        self.db.add(product)
        self._commit(product, new_blob=image_url)
        self._invalidate()

        logger.info("Product %s created (image=%s)", product.id, bool(image_url))
        return self._project(product)

    @cached(ttl=lambda: settings.CACHE_TTL_PRODUCT, key=product_key, schema=ProductWithPricing)
    def get_product(self, product_id: str) -> ProductWithPricing:
        return self._project(self.get_entity(product_id))

    @cached(ttl=lambda: settings.CACHE_TTL_PRODUCT_LIST, key=_list_key, schema=ProductListPage)
    def list_products(self, query: ProductQuery) -> ProductListPage:
        q = self.db.query(Product)

        if query.name:
            q = q.filter(Product.name.ilike(f"%{_escape_like(query.name)}%", escape="\\"))
        if query.min_price is not None:
            q = q.filter(Product.price >= query.min_price)
        if query.max_price is not None:
            q = q.filter(Product.price <= query.max_price)

        sort_col = SORTABLE.get((query.sort_by or "").lower(), Product.created_at)
        if query.order == "asc":
            q = q.order_by(sort_col.asc(), Product.id.asc())
        else:
            q = q.order_by(sort_col.desc(), Product.id.desc())

        total = q.count()
        items = q.offset((query.page - 1) * query.page_size).limit(query.page_size).all()

        return ProductListPage(
            items=[self._project(p) for p in items],
            total=total,
            page=query.page,
            page_size=query.page_size,
        )

    def update(
        self, product_id: str, data: ProductUpdate, image: Optional[ImageUpload] = None
    ) -> ProductWithPricing:
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes:
            changes["name"] = _check_name(changes["name"])
        if changes.get("price") is not None:
            changes["price"] = _check_price(changes["price"])
        if changes.get("stock_quantity") is not None:
            changes["stock_quantity"] = _check_stock(changes["stock_quantity"])
        if changes.get("discount_percentage") is not None:
            changes["discount_percentage"] = _check_percentage(changes["discount_percentage"])
        for field in ("discount_start_date", "discount_end_date"):
            if field in changes:
                changes[field] = as_utc(changes[field])

        product = self.get_entity(product_id)
        _check_window(
            changes.get("discount_start_date", product.discount_start_date),
            changes.get("discount_end_date", product.discount_end_date),
        )

        old_image = product.image_url
        new_image = self._upload(image) if image else None

        for key, value in changes.items():
            if value is None and key in ("name", "price", "stock_quantity", "description"):
                continue  # required columns are never nulled by a partial update
            setattr(product, key, value)
        if new_image:
            product.image_url = new_image

        self._commit(product, new_blob=new_image)
        self._invalidate(product_id)

        # Old blob goes only once the new locator is stored
        if new_image and old_image:
            self.blobs.delete(old_image)

        logger.info("Product %s updated (fields=%s, image=%s)", product_id, sorted(changes), bool(new_image))
        return self._project(product)

    def delete(self, product_id: str) -> str:
        product = self.get_entity(product_id)
        name, image_url = product.name, product.image_url

        self.db.delete(product)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self._invalidate(product_id)

        if image_url:
            self.blobs.delete(image_url)

        logger.info("Product %s deleted", product_id)
        return name

    def apply_discount(self, product_id: str, data: ApplyDiscount) -> ProductWithPricing:
        percentage = _check_percentage(data.discount_percentage, allow_zero=False)
        product = self.get_entity(product_id)
        _check_window(data.discount_start_date, data.discount_end_date)

        product.discount_percentage = percentage
        product.discount_start_date = as_utc(data.discount_start_date)
        product.discount_end_date = as_utc(data.discount_end_date)

        self._commit(product)
        self._invalidate(product_id)

        logger.info("Discount %s%% applied to product %s", percentage, product_id)
        return self._project(product)

    def remove_discount(self, product_id: str) -> ProductWithPricing:
        product = self.get_entity(product_id)

        product.discount_percentage = None
        product.discount_start_date = None
        product.discount_end_date = None

        self._commit(product)
        self._invalidate(product_id)

        logger.info("Discount removed from product %s", product_id)
        return self._project(product)


def get_product_service(
    db: Session = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
    blobs: LocalBlobStore = Depends(get_blob_store),
) -> ProductService:
    return ProductService(db, cache, blobs)
