from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# Mixin для временных меток
class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )


# Товары каталога: только поля, нужные для сведения офферов
class Product(Base, TimestampMixin):
    __tablename__ = "products"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    sku = Column(String, nullable=False)
    local_stock_quantity = Column(Integer, nullable=False, default=0, server_default="0")
    price = Column(Numeric(12, 2), nullable=True)
    type = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    external_system_id = Column(String, nullable=True)
    stock_status = Column(String, nullable=True)
    # лучшее внешнее предложение (qty >= 4, самая низкая цена)
    best_offer_quantity = Column(Integer, nullable=False, default=0, server_default="0")
    best_offer_price = Column(Numeric(12, 2), nullable=True)

    __table_args__ = (
        UniqueConstraint("sku", name="uq_products_sku"),
    )


# Предложения поставщиков: не больше одной строки на (товар, поставщик)
class ProductOffer(Base, TimestampMixin):
    __tablename__ = "product_offers"

    product_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    supplier_id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("product_id", "supplier_id", name="pk_product_offers"),
        Index("ix_product_offers_supplier", "supplier_id"),
    )


# Доп. поля от поставщиков (eprel, dot, is_demo)
class ProductAttribute(Base):
    __tablename__ = "product_attributes"

    product_id = Column(BigInteger().with_variant(Integer, "sqlite"), ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    key = Column(String(64), nullable=False)
    value = Column(String, nullable=True)

    __table_args__ = (
        PrimaryKeyConstraint("product_id", "key", name="pk_product_attributes"),
    )


# Коэффициенты наценки. type/brand = NULL -> подходит к любому значению
class SupplierCoefficient(Base):
    __tablename__ = "supplier_coefficients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    supplier = Column(String, nullable=False)
    type = Column(String, nullable=True)
    brand = Column(String, nullable=True)
    coefficient = Column(Numeric(10, 4), nullable=False, default=1)

    __table_args__ = (
        Index("ix_supplier_coefficients_supplier", "supplier"),
    )
