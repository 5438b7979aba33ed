from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base_class import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)

    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, default="")
    price = Column(Float, nullable=False)
    brand = Column(String(100), default="")
    sold_info = Column(String(200), default="")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = relationship("Category", back_populates="products")
    images = relationship(
        "ProductImage",
        back_populates="product",
        order_by="[ProductImage.sort_order, ProductImage.id]",
    )
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        order_by="ProductVariant.id",
    )

    @property
    def category_name(self):
        return self.category.name if self.category else None

    @property
    def first_image(self):
        return self.images[0].image_url if self.images else None


Index("ix_products_category_id", Product.category_id)


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(500), nullable=False)  # stored filename under PRODUCT_UPLOAD_DIR
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="images")


class ProductVariant(Base):
    """A color + size + gender SKU of a product with its own stock."""
    __tablename__ = "product_variants"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_variants_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    color_name = Column(String(50))
    color_hex = Column(String(9))
    size = Column(String(20))
    gender = Column(String(20))
    stock = Column(Integer, default=0, nullable=False)
    code = Column(String(50))
    key_code = Column(String(50))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="variants")
