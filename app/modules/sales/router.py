# app/modules/sales/router.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from app.config.database import get_db
from .errors import ErrorCode, PosError
from .service import SalesService
from .session import CheckoutSession, CheckoutSessionRegistry, get_session_registry
from .schemas import (
    AddToCartRequest, CheckoutRequest, CartLine, CartTotals, CheckoutReceipt,
    CheckoutSessionResponse, ProductInfo, SaleResponse
)

router = APIRouter(prefix="/pos", tags=["POS - Ventas"])

ERROR_STATUS = {
    ErrorCode.validation_error: 400,
    ErrorCode.not_found: 404,
    ErrorCode.insufficient_stock: 409,
    ErrorCode.concurrent_stock_conflict: 409,
    ErrorCode.exchange_rate_unavailable: 503,
    ErrorCode.commit_failure: 500,
}

def raise_pos_error(error: PosError):
    """Convertir un error tipado del core en respuesta HTTP"""
    raise HTTPException(
        status_code=ERROR_STATUS[error.code],
        detail=error.model_dump(mode="json")
    )

def get_checkout_session(
    session_id: str,
    registry: CheckoutSessionRegistry = Depends(get_session_registry)
) -> CheckoutSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Sesión de cobro no encontrada")
    return session

# ==================== SESIONES DE COBRO ====================

@router.post("/sessions", response_model=CheckoutSessionResponse, status_code=201)
async def open_checkout_session(
    registry: CheckoutSessionRegistry = Depends(get_session_registry)
):
    """
    Abrir una sesión de cobro con carrito vacío
    """
    return registry.create().to_response()

@router.get("/sessions/{session_id}", response_model=CheckoutSessionResponse)
async def get_checkout_session_state(
    session: CheckoutSession = Depends(get_checkout_session)
):
    return session.to_response()

@router.delete("/sessions/{session_id}")
async def cancel_checkout_session(
    session: CheckoutSession = Depends(get_checkout_session),
    registry: CheckoutSessionRegistry = Depends(get_session_registry),
    db: Session = Depends(get_db)
):
    """
    Cancelar la venta en curso y cerrar la sesión (nada se persiste)
    """
    service = SalesService(db)

    result = service.cancel(session)
    if not result.ok:
        raise_pos_error(result.error)

    registry.discard(session.session_id)

    return {"success": True, "message": "Sesión de cobro cancelada", "session_id": session.session_id}

# ==================== CARRITO ====================

@router.post("/sessions/{session_id}/items", response_model=CartLine)
async def add_to_cart(
    item: AddToCartRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    db: Session = Depends(get_db)
):
    """
    Agregar producto por código de barras

    - Si el producto ya está en el carrito se suma la cantidad
    - Verifica stock disponible (incluye lo que ya está en el carrito)
    """
    service = SalesService(db)

    result = await service.add_to_cart(session, item.sku, item.quantity)
    if not result.ok:
        raise_pos_error(result.error)

    return result.value

@router.delete("/sessions/{session_id}/items/{sku}")
async def remove_from_cart(
    sku: str,
    session: CheckoutSession = Depends(get_checkout_session),
    db: Session = Depends(get_db)
):
    """
    Quitar la línea completa de un producto
    """
    service = SalesService(db)

    result = await service.remove_from_cart(session, sku)
    if not result.ok:
        raise_pos_error(result.error)

    return {"success": True, "sku": sku, "subtotal": session.cart.subtotal()}

@router.get("/sessions/{session_id}/totals", response_model=CartTotals)
async def get_current_totals(
    session: CheckoutSession = Depends(get_checkout_session),
    db: Session = Depends(get_db)
):
    """
    Subtotal en kip y equivalentes en USD / THB
    """
    service = SalesService(db)

    return await service.current_totals(session)

# ==================== COBRO ====================

@router.post("/sessions/{session_id}/checkout", response_model=CheckoutReceipt)
async def checkout(
    checkout_data: CheckoutRequest,
    session: CheckoutSession = Depends(get_checkout_session),
    db: Session = Depends(get_db)
):
    """
    Cobrar el carrito

    - Revalida stock y descuenta inventario en la misma transacción
    - Liga la venta a la última tasa de cambio
    - Si falla, el carrito queda intacto para reintentar
    """
    service = SalesService(db)

    result = await service.checkout(
        session,
        checkout_data.payment_amount,
        checkout_data.customer_id,
        checkout_data.employee_id
    )
    if not result.ok:
        raise_pos_error(result.error)

    return result.value

# ==================== CONSULTAS ====================

@router.get("/products", response_model=List[ProductInfo])
async def search_products(
    q: str = Query(..., min_length=1, description="Código o nombre"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    service = SalesService(db)

    return await service.search_products(q, limit)

@router.get("/products/{barcode}", response_model=ProductInfo)
async def get_product(barcode: str, db: Session = Depends(get_db)):
    """
    Consultar precio, unidad y stock por código de barras
    """
    service = SalesService(db)

    result = await service.lookup_product(barcode)
    if not result.ok:
        raise_pos_error(result.error)

    return result.value

@router.get("/sales/{sale_id}", response_model=SaleResponse)
async def get_sale(sale_id: int, db: Session = Depends(get_db)):
    """
    Venta registrada con sus líneas
    """
    service = SalesService(db)

    sale = await service.get_sale(sale_id)
    if sale is None:
        raise HTTPException(status_code=404, detail="Venta no encontrada")

    return sale
