# protoshop/routers/cart.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from protoshop.core.auth import get_current_user
from protoshop.database import get_session
from protoshop.models.user import User
from protoshop.repositories.cart_repo import CartRepository
from protoshop.repositories.product_repo import ProductRepository
from protoshop.schemas.cart import CartItemCreate, CartItemUpdate, CartSummary
from protoshop.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
service = CartService(cart_repo, product_repo)


def get_cart_service() -> CartService:
    return service


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Get current user's cart summary (empty if no cart yet).
    """
    return service.get_cart_summary(session, current_user.id)


@router.post("/items", response_model=CartSummary, status_code=status.HTTP_201_CREATED)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Add product to the current user's cart.

    Adding a product already in the cart increases its quantity.
    Returns the updated cart summary.
    """
    return service.add_to_cart(session, current_user.id, payload)


@router.put("/items/{product_id}", response_model=CartSummary)
def update_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Set the quantity of a product in the cart.

    Returns the updated cart summary.
    """
    return service.update_quantity(
        session=session,
        user_id=current_user.id,
        product_id=product_id,
        payload=payload,
    )


@router.delete("/items/{product_id}", response_model=CartSummary)
def remove_cart_item(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Remove a product from the cart.

    Returns the updated cart summary.
    """
    return service.remove_item(session, current_user.id, product_id)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    service: CartService = Depends(get_cart_service),
):
    """
    Clear the entire cart.

    Returns an empty cart summary.
    """
    return service.clear_cart(session, current_user.id)
