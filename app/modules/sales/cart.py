# app/modules/sales/cart.py
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Union

from .errors import PosError, Result
from .schemas import CartLine

Number = Union[Decimal, int, float, str]

def to_decimal(value: Number) -> Optional[Decimal]:
    """Convertir a Decimal pasando por str para no arrastrar error de float"""
    if isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    return amount if amount.is_finite() else None

class CartAggregator:
    """
    Carrito de una sesión de cobro. Un solo escritor: solo la sesión dueña
    lo modifica, por eso no usa locks.

    Las líneas se indexan por SKU; agregar un SKU existente suma cantidad
    y conserva el precio con el que entró al carrito.
    """

    def __init__(self):
        self._lines: Dict[str, CartLine] = {}

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def quantity_of(self, sku: str) -> int:
        line = self._lines.get(sku)
        return line.quantity if line else 0

    def add_line(
        self,
        sku: str,
        quantity: int,
        unit_price: Number,
        name: str = "",
        unit: str = ""
    ) -> Result[CartLine]:
        """
        Agregar una línea o sumar cantidad a la existente.
        Ante cualquier error el carrito queda intacto.
        """
        if not sku:
            return Result.failure(PosError.validation("El código de barras es obligatorio"))

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return Result.failure(
                PosError.validation(f"La cantidad debe ser un entero mayor a 0 (recibido: {quantity})", sku=sku)
            )

        price = to_decimal(unit_price)
        if price is None or price < 0:
            return Result.failure(
                PosError.validation(f"El precio unitario no puede ser negativo (recibido: {unit_price})", sku=sku)
            )

        existing = self._lines.get(sku)
        if existing:
            line = existing.model_copy(update={"quantity": existing.quantity + quantity})
        else:
            line = CartLine(sku=sku, name=name, unit=unit, quantity=quantity, unit_price=price)

        self._lines[sku] = line
        return Result.success(line)

    def remove_line(self, sku: str) -> Result[None]:
        """Quitar la línea completa (no decrementa parcialmente)"""
        if sku not in self._lines:
            return Result.failure(PosError.not_found(f"{sku} no está en el carrito", sku=sku))

        del self._lines[sku]
        return Result.success()

    def clear(self):
        self._lines.clear()

    def subtotal(self) -> Decimal:
        # Siempre recalculado desde las líneas
        return sum((line.line_total for line in self._lines.values()), Decimal("0"))
