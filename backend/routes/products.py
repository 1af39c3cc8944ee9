# backend/routes/products.py
from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

import schemas.product as product_schemas
from services.products import ProductService, get_product_service
from utils.validators import ImageUpload, parse_uuid, validate_image

router = APIRouter(prefix="/products", tags=["Products"])


# ---- HELPERS ----
def _read_image(file: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Read an optional multipart image into memory and validate it."""
    if file is None or not file.filename:
        return None
    try:
        data = file.file.read()
    finally:
        file.file.close()
    return validate_image(ImageUpload(data=data, content_type=file.content_type or "", filename=file.filename))


# =========================
# LISTA PRODUKTÓW
# =========================
@router.get("", response_model=product_schemas.ProductListPage)
def list_products(
    name: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    service: ProductService = Depends(get_product_service),
):
    query = product_schemas.ProductQuery(
        name=name, min_price=min_price, max_price=max_price,
        page=page, page_size=page_size, sort_by=sort_by, order=order,
    )
    return service.list_products(query)


# =========================
# POJEDYNCZY PRODUKT
# =========================
@router.get("/{product_id}", response_model=product_schemas.ProductWithPricing)
def get_product(product_id: str, service: ProductService = Depends(get_product_service)):
    return service.get_product(parse_uuid(product_id))


# =========================
# DODAWANIE PRODUKTU (Form + File)
# =========================
@router.post("", response_model=product_schemas.ProductWithPricing, status_code=status.HTTP_201_CREATED)
def create_product(
    service: ProductService = Depends(get_product_service),
    image: Optional[UploadFile] = File(None),
    name: str = Form(...),
    description: str = Form(""),
    price: Decimal = Form(...),
    stock_quantity: int = Form(...),
    discount_percentage: Optional[Decimal] = Form(None),
    discount_start_date: Optional[datetime] = Form(None),
    discount_end_date: Optional[datetime] = Form(None),
):
    data = product_schemas.ProductCreate(
        name=name, description=description, price=price, stock_quantity=stock_quantity,
        discount_percentage=discount_percentage,
        discount_start_date=discount_start_date, discount_end_date=discount_end_date,
    )
    return service.create(data, _read_image(image))


# =========================
# AKTUALIZACJA PRODUKTU (Form + File, tylko przesłane pola)
# =========================
@router.put("/{product_id}", response_model=product_schemas.ProductWithPricing)
def update_product(
    product_id: str,
    service: ProductService = Depends(get_product_service),
    image: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[Decimal] = Form(None),
    stock_quantity: Optional[int] = Form(None),
    discount_percentage: Optional[Decimal] = Form(None),
    discount_start_date: Optional[datetime] = Form(None),
    discount_end_date: Optional[datetime] = Form(None),
):
    product_id = parse_uuid(product_id)
    sent = {
        "name": name, "description": description, "price": price,
        "stock_quantity": stock_quantity, "discount_percentage": discount_percentage,
        "discount_start_date": discount_start_date, "discount_end_date": discount_end_date,
    }
    data = product_schemas.ProductUpdate(**{k: v for k, v in sent.items() if v is not None})
    return service.update(product_id, data, _read_image(image))


# =========================
# RABATY
# =========================
@router.put("/{product_id}/discount", response_model=product_schemas.ProductWithPricing)
def apply_discount(
    product_id: str,
    payload: product_schemas.ApplyDiscount,
    service: ProductService = Depends(get_product_service),
):
    return service.apply_discount(parse_uuid(product_id), payload)


@router.delete("/{product_id}/discount", response_model=product_schemas.ProductWithPricing)
def remove_discount(product_id: str, service: ProductService = Depends(get_product_service)):
    return service.remove_discount(parse_uuid(product_id))


# =========================
# USUWANIE
# =========================
@router.delete("/{product_id}")
def delete_product(product_id: str, service: ProductService = Depends(get_product_service)):
    name = service.delete(parse_uuid(product_id))
    return {"detail": f"Product '{name}' deleted"}
