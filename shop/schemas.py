# shop/schemas.py
from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional


class FileProductImageResponse(BaseModel):
    id: str
    image_url: str
    display_order: int

    class Config:
        from_attributes = True


class FileProductResponse(BaseModel):
    """Schema for a file product in the catalogue."""
    id: str
    attachment_id: str
    title: str
    description: Optional[str] = None
    price: Decimal
    is_active: bool
    file_name: Optional[str] = None
    is_purchased: bool = False
    images: List[FileProductImageResponse] = []

    class Config:
        from_attributes = True


class BundleItem(BaseModel):
    attachment_id: str
    file_name: str


class ProductResponse(BaseModel):
    """Schema for a bundle in the catalogue."""
    id: str
    title: str
    description: Optional[str] = None
    price: Decimal
    thumbnail_url: Optional[str] = None
    is_active: bool
    items: List[BundleItem] = []
    is_purchased: bool = False


class ProductAttachmentDetail(BaseModel):
    id: str
    file_name: str
    file_type: Optional[str] = None

    class Config:
        from_attributes = True


class ProductDetailResponse(ProductResponse):
    """A bundle with the files it contains."""
    attachment_count: int
    attachments: List[ProductAttachmentDetail] = []


class FilePurchaseResponse(BaseModel):
    id: str
    file_product_id: str
    title: Optional[str] = None
    stripe_payment_intent_id: str
    amount_paid: Decimal
    purchased_at: datetime


class ProductPurchaseResponse(BaseModel):
    id: str
    product_id: str
    title: Optional[str] = None
    stripe_payment_intent_id: str
    amount_paid: Decimal
    purchased_at: datetime


class PurchasesResponse(BaseModel):
    files: List[FilePurchaseResponse]
    products: List[ProductPurchaseResponse]


class FileCheckoutRequest(BaseModel):
    file_product_id: Optional[str] = Field(default=None, alias="fileProductId")

    class Config:
        populate_by_name = True


class ProductCheckoutRequest(BaseModel):
    product_id: Optional[str] = Field(default=None, alias="productId")

    class Config:
        populate_by_name = True


class FileProductCreate(BaseModel):
    attachment_id: str
    title: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    is_active: bool = True


class FileProductUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class ProductCreate(BaseModel):
    title: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    thumbnail_url: Optional[str] = None
    is_active: bool = True
    attachment_ids: List[str] = []


class ProductUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    thumbnail_url: Optional[str] = None
    is_active: Optional[bool] = None
    attachment_ids: Optional[List[str]] = None


class FileProductImageCreate(BaseModel):
    image_url: str
    display_order: int = 0


class FileProductImageUpdate(BaseModel):
    display_order: int
