from pydantic import BaseModel, Field, ConfigDict, computed_field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

# ==================== ENUMS ====================

class CheckoutState(str, Enum):
    draft = "draft"
    validating = "validating"
    committing = "committing"
    committed = "committed"
    rolled_back = "rolled_back"

# ==================== CLASE BASE (Pydantic v2) ====================

class SalesBaseModel(BaseModel):
    """
    Clase base para todos los esquemas del módulo,
    con configuración de Pydantic v2.
    """
    model_config = ConfigDict(from_attributes=True)

# ==================== MODELOS DEL CORE ====================

class ProductInfo(SalesBaseModel):
    """Vista de solo lectura del catálogo para un código de barras"""
    barcode: str
    product_name: str
    unit: str
    quantity: int
    quantity_min: int = 0
    retail_price: Decimal

class CartLine(SalesBaseModel):
    sku: str
    name: str = ""
    unit: str = ""
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

    @computed_field
    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price

class SaleHeaderData(SalesBaseModel):
    """Cabecera que el coordinador entrega al repositorio"""
    exchange_rate_id: int
    customer_id: str
    employee_id: str
    sale_date: datetime
    subtotal: Decimal
    pay: Decimal
    change: Decimal
    checkout_token: Optional[str] = None

class SaleLineData(SalesBaseModel):
    sku: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

class CheckoutReceipt(SalesBaseModel):
    sale_id: int
    change: Decimal
    subtotal: Decimal
    pay: Decimal
    exchange_rate_id: int
    sale_date: datetime
    items_count: int

class CartTotals(SalesBaseModel):
    subtotal: Decimal
    total_usd: Decimal
    total_thb: Decimal
    exchange_rate_id: Optional[int] = None
    degraded: bool = Field(False, description="True si se usaron las tasas por defecto")

# ==================== REQUEST SCHEMAS ====================

class AddToCartRequest(BaseModel):
    sku: str = Field(..., min_length=1, description="Código de barras del producto")
    quantity: int = Field(1, description="Cantidad a agregar")

class CheckoutRequest(BaseModel):
    payment_amount: Decimal = Field(..., description="Dinero recibido en moneda local")
    customer_id: str = Field("", description="Código del cliente")
    employee_id: str = Field(..., min_length=1, description="Código del empleado que vende")

# ==================== RESPONSE SCHEMAS ====================

class CheckoutSessionResponse(SalesBaseModel):
    session_id: str
    state: CheckoutState
    lines: List[CartLine]
    subtotal: Decimal
    created_at: datetime

class SaleDetailResponse(SalesBaseModel):
    id: int
    product_id: str
    quantity: int
    price: Decimal
    total: Decimal

class SaleResponse(SalesBaseModel):
    id: int
    exchange_rate_id: int
    customer_id: str
    employee_id: str
    sale_date: datetime
    subtotal: Decimal
    pay: Decimal
    change: Decimal
    items: List[SaleDetailResponse]
