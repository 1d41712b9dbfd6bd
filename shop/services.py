# shop/services.py
import logging

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from auth.models import User
from courses.models import Attachment
from shop.models import FileProduct, FileProductImage, FilePurchase, Product, ProductAttachment, ProductPurchase
from shop.schemas import (
    BundleItem,
    FileProductCreate,
    FileProductImageCreate,
    FileProductImageResponse,
    FileProductImageUpdate,
    FileProductResponse,
    FileProductUpdate,
    FilePurchaseResponse,
    ProductAttachmentDetail,
    ProductCreate,
    ProductDetailResponse,
    ProductPurchaseResponse,
    ProductResponse,
    ProductUpdate,
    PurchasesResponse,
)
from payment.gateway import CheckoutSession
from errors import CheckoutError, NotFound, ValidationError
from config import settings

logger = logging.getLogger(__name__)

FILE_PRODUCT = "file_product"
PRODUCT = "product"


def _purchased_file_ids(user: Optional[User], db: Session) -> set:
    if user is None:
        return set()
    rows = db.query(FilePurchase.file_product_id).filter(FilePurchase.user_id == user.id).all()
    return {row.file_product_id for row in rows}


def _purchased_product_ids(user: Optional[User], db: Session) -> set:
    if user is None:
        return set()
    rows = db.query(ProductPurchase.product_id).filter(ProductPurchase.user_id == user.id).all()
    return {row.product_id for row in rows}


def _file_product_response(product: FileProduct, purchased: bool) -> FileProductResponse:
    return FileProductResponse(
        id=product.id,
        attachment_id=product.attachment_id,
        title=product.title,
        description=product.description,
        price=product.price,
        is_active=product.is_active,
        file_name=product.attachment.file_name if product.attachment else None,
        is_purchased=purchased,
        images=[FileProductImageResponse.model_validate(image) for image in product.images],
    )


def _product_response(product: Product, purchased: bool) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        title=product.title,
        description=product.description,
        price=product.price,
        thumbnail_url=product.thumbnail_url,
        is_active=product.is_active,
        items=[BundleItem(attachment_id=item.attachment_id, file_name=item.attachment.file_name) for item in product.items],
        is_purchased=purchased,
    )


class ShopService:
    @staticmethod
    def get_file_product(file_product_id: str, db: Session) -> Optional[FileProduct]:
        return db.query(FileProduct).filter(FileProduct.id == file_product_id).first()

    @staticmethod
    def get_product(product_id: str, db: Session) -> Optional[Product]:
        return db.query(Product).filter(Product.id == product_id).first()

    @staticmethod
    def list_file_products(user: Optional[User], db: Session, include_inactive: bool = False) -> List[FileProductResponse]:
        """Catalogue of single files, flagged with what the caller already owns."""
        query = db.query(FileProduct)
        if not include_inactive:
            query = query.filter(FileProduct.is_active.is_(True))
        owned = _purchased_file_ids(user, db)
        return [
            _file_product_response(product, product.id in owned)
            for product in query.order_by(FileProduct.created_at.desc()).all()
        ]

    @staticmethod
    def list_products(user: Optional[User], db: Session, include_inactive: bool = False) -> List[ProductResponse]:
        query = db.query(Product)
        if not include_inactive:
            query = query.filter(Product.is_active.is_(True))
        owned = _purchased_product_ids(user, db)
        return [_product_response(product, product.id in owned) for product in query.order_by(Product.created_at.desc()).all()]

    @staticmethod
    def file_product_detail(file_product_id: str, user: Optional[User], db: Session) -> FileProductResponse:
        """One file product with its gallery. Inactive ones stay visible to buyers."""
        product = ShopService.get_file_product(file_product_id, db)
        owned = _purchased_file_ids(user, db)
        if not product or (not product.is_active and file_product_id not in owned):
            raise NotFound("File product not found")
        return _file_product_response(product, file_product_id in owned)

    @staticmethod
    def product_detail(product_id: str, user: Optional[User], db: Session) -> ProductDetailResponse:
        product = ShopService.get_product(product_id, db)
        owned = _purchased_product_ids(user, db)
        if not product or (not product.is_active and product_id not in owned):
            raise NotFound("Product not found")
        attachments = sorted((item.attachment for item in product.items), key=lambda a: a.file_name)
        summary = _product_response(product, product_id in owned)
        return ProductDetailResponse(
            **summary.model_dump(),
            attachment_count=len(attachments),
            attachments=[ProductAttachmentDetail.model_validate(a) for a in attachments],
        )

    @staticmethod
    def get_purchases(user: User, db: Session) -> PurchasesResponse:
        files = db.query(FilePurchase).filter(FilePurchase.user_id == user.id).order_by(FilePurchase.purchased_at.desc()).all()
        products = db.query(ProductPurchase).filter(
            ProductPurchase.user_id == user.id
        ).order_by(ProductPurchase.purchased_at.desc()).all()
        return PurchasesResponse(
            files=[
                FilePurchaseResponse(
                    id=p.id,
                    file_product_id=p.file_product_id,
                    title=p.file_product.title if p.file_product else None,
                    stripe_payment_intent_id=p.stripe_payment_intent_id,
                    amount_paid=p.amount_paid,
                    purchased_at=p.purchased_at,
                )
                for p in files
            ],
            products=[
                ProductPurchaseResponse(
                    id=p.id,
                    product_id=p.product_id,
                    title=p.product.title if p.product else None,
                    stripe_payment_intent_id=p.stripe_payment_intent_id,
                    amount_paid=p.amount_paid,
                    purchased_at=p.purchased_at,
                )
                for p in products
            ],
        )

    @staticmethod
    def _insert_once(purchase, payment_intent_id: str, db: Session):
        db.add(purchase)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Purchase for payment intent {payment_intent_id} already recorded")
            return None
        db.refresh(purchase)
        return purchase

    @staticmethod
    def record_file_purchase(
        user_id: str, file_product_id: str, payment_intent_id: str, amount_paid: Decimal, db: Session
    ) -> Optional[FilePurchase]:
        """Insert the purchase keyed by payment intent; None if it already exists."""
        if db.query(FilePurchase).filter(FilePurchase.stripe_payment_intent_id == payment_intent_id).first():
            return None
        purchase = FilePurchase(
            user_id=user_id,
            file_product_id=file_product_id,
            stripe_payment_intent_id=payment_intent_id,
            amount_paid=amount_paid,
            purchased_at=datetime.utcnow(),
        )
        return ShopService._insert_once(purchase, payment_intent_id, db)

    @staticmethod
    def record_product_purchase(
        user_id: str, product_id: str, payment_intent_id: str, amount_paid: Decimal, db: Session
    ) -> Optional[ProductPurchase]:
        if db.query(ProductPurchase).filter(ProductPurchase.stripe_payment_intent_id == payment_intent_id).first():
            return None
        purchase = ProductPurchase(
            user_id=user_id,
            product_id=product_id,
            stripe_payment_intent_id=payment_intent_id,
            amount_paid=amount_paid,
            purchased_at=datetime.utcnow(),
        )
        return ShopService._insert_once(purchase, payment_intent_id, db)

    @staticmethod
    def start_file_checkout(user: User, file_product_id: Optional[str], gateway, db: Session) -> CheckoutSession:
        if not file_product_id:
            raise CheckoutError(400, "missing_file_product", "File product ID is required")
        product = ShopService.get_file_product(file_product_id, db)
        if not product:
            raise CheckoutError(404, "file_product_not_found", "File product not found")
        if not product.is_active:
            raise CheckoutError(400, "file_product_unavailable", "File product is not available")
        if file_product_id in _purchased_file_ids(user, db):
            raise CheckoutError(400, "already_purchased", "You already purchased this file")

        return gateway.create_payment_checkout(
            title=product.title,
            description=product.description,
            price=product.price,
            customer_email=user.email,
            metadata={"userId": user.id, "fileProductId": product.id, "type": FILE_PRODUCT},
            success_url=f"{settings.BASE_URL}/loja/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.BASE_URL}/loja?canceled=true",
        )

    @staticmethod
    def start_product_checkout(user: User, product_id: Optional[str], gateway, db: Session) -> CheckoutSession:
        if not product_id:
            raise CheckoutError(400, "missing_product", "Product ID is required")
        product = ShopService.get_product(product_id, db)
        if not product:
            raise CheckoutError(404, "product_not_found", "Product not found")
        if not product.is_active:
            raise CheckoutError(400, "product_unavailable", "Product is not available")
        if product_id in _purchased_product_ids(user, db):
            raise CheckoutError(400, "already_purchased", "You already purchased this product")

        return gateway.create_payment_checkout(
            title=product.title,
            description=product.description,
            price=product.price,
            customer_email=user.email,
            metadata={"userId": user.id, "productId": product.id, "type": PRODUCT},
            success_url=f"{settings.BASE_URL}/loja/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.BASE_URL}/loja?canceled=true",
        )

    @staticmethod
    def create_file_product(data: FileProductCreate, db: Session) -> FileProduct:
        if not db.query(Attachment).filter(Attachment.id == data.attachment_id).first():
            raise NotFound("Attachment not found")
        product = FileProduct(**data.model_dump())
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def update_file_product(file_product_id: str, data: FileProductUpdate, db: Session) -> FileProduct:
        product = ShopService.get_file_product(file_product_id, db)
        if not product:
            raise NotFound("File product not found")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(product, field, value)
        db.commit()
        db.refresh(product)
        return product

    @staticmethod
    def delete_file_product(file_product_id: str, db: Session) -> None:
        """Delete an unsold file product. Sold ones can only be deactivated."""
        product = ShopService.get_file_product(file_product_id, db)
        if not product:
            raise NotFound("File product not found")
        if db.query(FilePurchase).filter(FilePurchase.file_product_id == file_product_id).first():
            raise ValidationError("File product has purchases; deactivate it instead")
        db.delete(product)
        db.commit()

    @staticmethod
    def _set_items(product: Product, attachment_ids: List[str], db: Session) -> None:
        unique_ids = list(dict.fromkeys(attachment_ids))
        found = db.query(Attachment.id).filter(Attachment.id.in_(unique_ids)).count() if unique_ids else 0
        if found != len(unique_ids):
            raise NotFound("Attachment not found")
        # Keep surviving rows so the (product, attachment) constraint never sees a re-insert
        existing = {item.attachment_id: item for item in product.items}
        product.items = [existing.get(attachment_id) or ProductAttachment(attachment_id=attachment_id) for attachment_id in unique_ids]

    @staticmethod
    def create_product(data: ProductCreate, db: Session) -> ProductResponse:
        product = Product(**data.model_dump(exclude={"attachment_ids"}))
        ShopService._set_items(product, data.attachment_ids, db)
        db.add(product)
        db.commit()
        db.refresh(product)
        return _product_response(product, False)

    @staticmethod
    def update_product(product_id: str, data: ProductUpdate, db: Session) -> ProductResponse:
        product = ShopService.get_product(product_id, db)
        if not product:
            raise NotFound("Product not found")
        for field, value in data.model_dump(exclude_unset=True, exclude={"attachment_ids"}).items():
            setattr(product, field, value)
        if data.attachment_ids is not None:
            ShopService._set_items(product, data.attachment_ids, db)
        db.commit()
        db.refresh(product)
        return _product_response(product, False)

    @staticmethod
    def delete_product(product_id: str, db: Session) -> None:
        product = ShopService.get_product(product_id, db)
        if not product:
            raise NotFound("Product not found")
        if db.query(ProductPurchase).filter(ProductPurchase.product_id == product_id).first():
            raise ValidationError("Product has purchases; deactivate it instead")
        db.delete(product)
        db.commit()

    @staticmethod
    def add_image(file_product_id: str, data: FileProductImageCreate, db: Session) -> FileProductImage:
        if not ShopService.get_file_product(file_product_id, db):
            raise NotFound("File product not found")
        image = FileProductImage(file_product_id=file_product_id, **data.model_dump())
        db.add(image)
        db.commit()
        db.refresh(image)
        return image

    @staticmethod
    def _get_image(image_id: str, db: Session) -> FileProductImage:
        image = db.query(FileProductImage).filter(FileProductImage.id == image_id).first()
        if not image:
            raise NotFound("Image not found")
        return image

    @staticmethod
    def reorder_image(image_id: str, data: FileProductImageUpdate, db: Session) -> FileProductImage:
        image = ShopService._get_image(image_id, db)
        image.display_order = data.display_order
        db.commit()
        db.refresh(image)
        return image

    @staticmethod
    def delete_image(image_id: str, db: Session) -> None:
        db.delete(ShopService._get_image(image_id, db))
        db.commit()
