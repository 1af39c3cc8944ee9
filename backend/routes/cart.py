# backend/routes/cart.py
from fastapi import APIRouter, Depends, Response, status

from schemas.cart import CartAddItem, CartOut
from services.cart import CartService, get_cart_service
from utils.validators import parse_uuid

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartOut)
def get_cart(service: CartService = Depends(get_cart_service)):
    return service.get_cart()


@router.post("/items", response_model=CartOut, status_code=status.HTTP_201_CREATED)
def add_to_cart(payload: CartAddItem, service: CartService = Depends(get_cart_service)):
    return service.add_line(parse_uuid(payload.product_id), payload.quantity)


@router.delete("/items/{item_id}", response_model=CartOut)
def delete_cart_item(item_id: str, service: CartService = Depends(get_cart_service)):
    return service.remove_line(parse_uuid(item_id))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_cart(service: CartService = Depends(get_cart_service)):
    service.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
