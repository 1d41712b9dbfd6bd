# shop/models.py
from sqlalchemy import Column, Integer, String, ForeignKey, Text, Boolean, DateTime, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base
from auth.models import new_id
from datetime import datetime
from typing import Optional


class FileProduct(Base):
    """A single attachment sold on its own."""
    __tablename__ = "file_products"

    id: str = Column(String(36), primary_key=True, default=new_id)
    attachment_id: str = Column(String(36), ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False)
    title: str = Column(String, nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    price: float = Column(Numeric(10, 2), nullable=False)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    attachment = relationship("Attachment", back_populates="file_products")
    images = relationship(
        "FileProductImage", back_populates="file_product", cascade="all, delete-orphan",
        order_by="FileProductImage.display_order",
    )


class Product(Base):
    """A bundle of attachments sold together."""
    __tablename__ = "products"

    id: str = Column(String(36), primary_key=True, default=new_id)
    title: str = Column(String, nullable=False)
    description: Optional[str] = Column(Text, nullable=True)
    price: float = Column(Numeric(10, 2), nullable=False)
    thumbnail_url: Optional[str] = Column(String, nullable=True)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship("ProductAttachment", back_populates="product", cascade="all, delete-orphan")


class ProductAttachment(Base):
    __tablename__ = "product_attachments"

    id: str = Column(String(36), primary_key=True, default=new_id)
    product_id: str = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    attachment_id: str = Column(String(36), ForeignKey("attachments.id", ondelete="CASCADE"), nullable=False)

    product = relationship("Product", back_populates="items")
    attachment = relationship("Attachment", back_populates="bundle_items")

    __table_args__ = (UniqueConstraint('product_id', 'attachment_id', name='unique_product_attachment'),)


class FilePurchase(Base):
    """Immutable record of a paid file product."""
    __tablename__ = "file_purchases"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    file_product_id: str = Column(String(36), ForeignKey("file_products.id"), nullable=False)
    stripe_payment_intent_id: str = Column(String, unique=True, nullable=False)
    amount_paid: float = Column(Numeric(10, 2), nullable=False)
    purchased_at: datetime = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="file_purchases")
    file_product = relationship("FileProduct")


class ProductPurchase(Base):
    """Immutable record of a paid bundle."""
    __tablename__ = "product_purchases"

    id: str = Column(String(36), primary_key=True, default=new_id)
    user_id: str = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id: str = Column(String(36), ForeignKey("products.id"), nullable=False)
    stripe_payment_intent_id: str = Column(String, unique=True, nullable=False)
    amount_paid: float = Column(Numeric(10, 2), nullable=False)
    purchased_at: datetime = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="product_purchases")
    product = relationship("Product")


class FileProductImage(Base):
    """Gallery image shown on a file product's page."""
    __tablename__ = "file_product_images"

    id: str = Column(String(36), primary_key=True, default=new_id)
    file_product_id: str = Column(
        String(36), ForeignKey("file_products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: str = Column(String, nullable=False)
    display_order: int = Column(Integer, nullable=False, default=0)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
    updated_at: datetime = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    file_product = relationship("FileProduct", back_populates="images")
