# app/modules/sales/errors.py
"""
Taxonomía de errores del core de ventas.

Las condiciones esperadas (stock insuficiente, SKU desconocido, pago menor
al total...) viajan como ``Result`` con un ``PosError`` tipado, nunca como
excepciones. Las únicas excepciones de este módulo sirven para deshacer la
transacción de la venta y se convierten en ``Result`` en el coordinador.
"""
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

class ErrorCode(str, Enum):
    validation_error = "validation_error"
    not_found = "not_found"
    insufficient_stock = "insufficient_stock"
    concurrent_stock_conflict = "concurrent_stock_conflict"
    exchange_rate_unavailable = "exchange_rate_unavailable"
    commit_failure = "commit_failure"

class PosError(BaseModel):
    code: ErrorCode
    message: str
    sku: Optional[str] = None
    remaining: Optional[int] = None

    @classmethod
    def validation(cls, message: str, sku: Optional[str] = None) -> "PosError":
        return cls(code=ErrorCode.validation_error, message=message, sku=sku)

    @classmethod
    def not_found(cls, message: str, sku: Optional[str] = None) -> "PosError":
        return cls(code=ErrorCode.not_found, message=message, sku=sku)

    @classmethod
    def insufficient_stock(cls, sku: str, remaining: int) -> "PosError":
        return cls(
            code=ErrorCode.insufficient_stock,
            message=f"Stock insuficiente para {sku}. Disponible: {remaining}",
            sku=sku,
            remaining=remaining
        )

    @classmethod
    def stock_conflict(cls, sku: str, remaining: Optional[int] = None) -> "PosError":
        return cls(
            code=ErrorCode.concurrent_stock_conflict,
            message=f"El stock de {sku} cambió durante la venta; actualice el carrito",
            sku=sku,
            remaining=remaining
        )

    @classmethod
    def exchange_rate_unavailable(cls) -> "PosError":
        return cls(
            code=ErrorCode.exchange_rate_unavailable,
            message="No hay tasa de cambio registrada"
        )

    @classmethod
    def commit_failure(cls, message: str) -> "PosError":
        return cls(code=ErrorCode.commit_failure, message=message)

class Result(BaseModel, Generic[T]):
    """Resultado de una operación: ``value`` si tuvo éxito, ``error`` si no"""
    value: Optional[T] = None
    error: Optional[PosError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: PosError) -> "Result[T]":
        return cls(error=error)

# ==================== EXCEPCIONES INTERNAS DE LA TRANSACCIÓN ====================

class StockConflict(Exception):
    """El decremento condicional no afectó filas: otra venta consumió el stock"""

    def __init__(self, sku: str):
        super().__init__(f"Conflicto de stock en {sku}")
        self.sku = sku

class CommitCancelled(Exception):
    """La escritura se abortó (timeout o cancelación) antes de confirmarse"""
