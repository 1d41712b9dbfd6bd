# shop/routes.py
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from typing import List, Optional
from shop.services import ShopService
from shop.schemas import (
    FileCheckoutRequest,
    FileProductResponse,
    ProductCheckoutRequest,
    ProductDetailResponse,
    ProductResponse,
    PurchasesResponse,
)
from subscription.schemas import CheckoutSessionResponse
from auth.routes import get_current_user, get_optional_user
from auth.models import User
from database import get_db
from dependencies import get_payment_gateway
from errors import CheckoutError
from config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shop"])


def _shop_redirect(code: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.BASE_URL}/loja?error={code}")


def _redirect_checkout(start, user: Optional[User], item_id: Optional[str], login_query: str) -> RedirectResponse:
    if user is None:
        target = f"/loja?{urlencode({login_query: item_id})}" if item_id else "/loja"
        return RedirectResponse(f"{settings.BASE_URL}/login?{urlencode({'redirect': target}, safe='/')}")
    try:
        session = start(user, item_id)
    except CheckoutError as e:
        return _shop_redirect(e.code)
    except HTTPException as e:
        logger.error(f"Checkout failed for user {user.id}: {e.detail}")
        return _shop_redirect("checkout_failed")
    if not session.url:
        return _shop_redirect("checkout_failed")
    return RedirectResponse(session.url)


@router.get("/shop/files", response_model=List[FileProductResponse])
def list_file_products(db: Session = Depends(get_db), current_user: Optional[User] = Depends(get_optional_user)):
    """Active file products, flagged with what the caller owns."""
    return ShopService.list_file_products(current_user, db)


@router.get("/shop/products", response_model=List[ProductResponse])
def list_products(db: Session = Depends(get_db), current_user: Optional[User] = Depends(get_optional_user)):
    """Active bundles, flagged with what the caller owns."""
    return ShopService.list_products(current_user, db)


@router.get("/shop/files/{file_product_id}", response_model=FileProductResponse)
def get_file_product(
    file_product_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    return ShopService.file_product_detail(file_product_id, current_user, db)


@router.get("/shop/products/{product_id}", response_model=ProductDetailResponse)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """A bundle with the files it contains."""
    return ShopService.product_detail(product_id, current_user, db)


@router.get("/shop/purchases", response_model=PurchasesResponse)
def list_purchases(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return ShopService.get_purchases(current_user, db)


@router.post("/stripe/checkout-file", response_model=CheckoutSessionResponse)
def create_file_checkout(
    body: FileCheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway=Depends(get_payment_gateway),
):
    """One-time checkout for a single file."""
    session = ShopService.start_file_checkout(current_user, body.file_product_id, gateway, db)
    return CheckoutSessionResponse(session_id=session.id, url=session.url)


@router.get("/stripe/checkout-file")
def redirect_to_file_checkout(
    fileProductId: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    gateway=Depends(get_payment_gateway),
):
    return _redirect_checkout(
        lambda user, item_id: ShopService.start_file_checkout(user, item_id, gateway, db),
        current_user,
        fileProductId,
        "fileProductId",
    )


@router.post("/stripe/checkout-product", response_model=CheckoutSessionResponse)
def create_product_checkout(
    body: ProductCheckoutRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway=Depends(get_payment_gateway),
):
    """One-time checkout for a bundle."""
    session = ShopService.start_product_checkout(current_user, body.product_id, gateway, db)
    return CheckoutSessionResponse(session_id=session.id, url=session.url)


@router.get("/stripe/checkout-product")
def redirect_to_product_checkout(
    productId: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
    gateway=Depends(get_payment_gateway),
):
    return _redirect_checkout(
        lambda user, item_id: ShopService.start_product_checkout(user, item_id, gateway, db),
        current_user,
        productId,
        "productId",
    )
