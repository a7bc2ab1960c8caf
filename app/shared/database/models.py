from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.config.database import Base

class TimestampMixin:
    """Mixin para timestamps automáticos"""
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

# ===== PRODUCTOS =====

class Product(Base, TimestampMixin):
    """Modelo de Producto; el código de barras es la clave (SKU)"""
    __tablename__ = "product"

    barcode = Column(String(50), primary_key=True, index=True)
    product_name = Column(String(255), nullable=False)
    unit = Column(String(50), nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=0)
    quantity_min = Column(Integer, nullable=False, default=0)
    cost_price = Column(Numeric(12, 2), nullable=False, default=0)
    retail_price = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(50), default='available')

    # El stock nunca puede quedar negativo, ni siquiera por un UPDATE fuera del core
    __table_args__ = (
        CheckConstraint('quantity >= 0', name='product_quantity_non_negative'),
    )

    # Relationships
    sale_details = relationship("SaleDetail", back_populates="product")

# ===== TASAS DE CAMBIO =====

class ExchangeRate(Base):
    """Modelo de Tasa de Cambio; inmutable una vez creada (auditoría de ventas)"""
    __tablename__ = "exchange_rate"

    id = Column(Integer, primary_key=True, index=True)
    usd_rate = Column(Numeric(14, 4), nullable=False)
    thb_rate = Column(Numeric(14, 4), nullable=False)
    created_date = Column(DateTime, server_default=func.current_timestamp(), nullable=False)

    # Relationships
    sales = relationship("Sale", back_populates="exchange_rate")

# ===== VENTAS =====

class Sale(Base):
    """Modelo de Venta (cabecera)"""
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    exchange_rate_id = Column(Integer, ForeignKey("exchange_rate.id"), nullable=False)
    customer_id = Column(String(50), nullable=False, default="")
    employee_id = Column(String(50), nullable=False, default="")
    sale_date = Column(DateTime, server_default=func.current_timestamp(), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    pay = Column(Numeric(12, 2), nullable=False)
    change = Column(Numeric(12, 2), nullable=False)
    checkout_token = Column(String(64), unique=True, index=True)

    # Relationships
    exchange_rate = relationship("ExchangeRate", back_populates="sales")
    items = relationship("SaleDetail", back_populates="sale", order_by="SaleDetail.id")

class SaleDetail(Base):
    """Modelo de Línea de Venta"""
    __tablename__ = "sales_detail"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(String(50), ForeignKey("product.barcode"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    sale = relationship("Sale", back_populates="items")
    product = relationship("Product", back_populates="sale_details")
