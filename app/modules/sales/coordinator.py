# app/modules/sales/coordinator.py
"""
Coordinador de la escritura atómica de una venta.

Estados: draft -> validating -> committing -> committed | rolled_back.
Es el único componente que escribe ventas; no limpia el carrito, eso le
corresponde a la sesión cuando recibe un resultado exitoso.
"""
import asyncio
import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from app.modules.exchange_rates.schemas import ExchangeRateSnapshot
from .cart import CartAggregator, Number, to_decimal
from .errors import ErrorCode, PosError, Result, StockConflict, CommitCancelled
from .pricing import PricingEngine
from .repository import SaleRepository
from .schemas import CheckoutState, CheckoutReceipt, SaleHeaderData, SaleLineData
from .stock import StockValidator

logger = logging.getLogger(__name__)

class SaleCommitCoordinator:

    def __init__(
        self,
        repository: SaleRepository,
        stock_validator: StockValidator,
        pricing: Optional[PricingEngine] = None,
        commit_timeout: float = 10.0,
        on_transition: Optional[Callable[[CheckoutState], None]] = None
    ):
        self.repository = repository
        self.stock_validator = stock_validator
        self.pricing = pricing or PricingEngine()
        self.commit_timeout = commit_timeout
        self.on_transition = on_transition
        self.state = CheckoutState.draft

    def _transition(self, state: CheckoutState):
        self.state = state
        if self.on_transition:
            self.on_transition(state)

    def _rollback(self, error: PosError) -> Result[CheckoutReceipt]:
        self._transition(CheckoutState.rolled_back)
        return Result.failure(error)

    def check_preconditions(
        self,
        cart: CartAggregator,
        payment: Number,
        has_exchange_rate: bool = True
    ) -> Result[Decimal]:
        """
        Precondiciones del cobro, sin tocar almacenamiento. Devuelve el pago
        convertido a Decimal.
        """
        if cart.is_empty:
            return Result.failure(PosError.validation("El carrito está vacío"))

        pay = to_decimal(payment)
        if pay is None or pay < 0:
            return Result.failure(PosError.validation(f"Monto de pago inválido: {payment}"))

        if not has_exchange_rate:
            return Result.failure(PosError.exchange_rate_unavailable())

        subtotal = cart.subtotal()
        if pay < subtotal:
            return Result.failure(
                PosError.validation(f"El pago ({pay}) es menor al total ({subtotal})")
            )

        return Result.success(pay)

    async def commit(
        self,
        cart: CartAggregator,
        payment: Number,
        exchange_rate: Optional[ExchangeRateSnapshot],
        customer_id: str,
        employee_id: str,
        checkout_token: Optional[str] = None
    ) -> Result[CheckoutReceipt]:
        """
        Cobrar el carrito: validar, revalidar stock y escribir todo en una
        sola transacción.
        """
        # 1. Precondiciones, sin tocar almacenamiento
        checked = self.check_preconditions(cart, payment, exchange_rate is not None)
        if not checked.ok:
            return Result.failure(checked.error)

        try:
            return await self._validate_and_write(
                cart, cart.subtotal(), checked.value, exchange_rate,
                customer_id, employee_id, checkout_token
            )
        except asyncio.CancelledError:
            self._transition(CheckoutState.rolled_back)
            raise
        except Exception as e:
            # Conexión perdida al revalidar o error inesperado al escribir
            logger.error(f"❌ Error durante el cobro: {e}")
            return self._rollback(PosError.commit_failure(f"Error registrando venta: {str(e)}"))

    async def _validate_and_write(
        self,
        cart: CartAggregator,
        subtotal: Decimal,
        pay: Decimal,
        exchange_rate: ExchangeRateSnapshot,
        customer_id: str,
        employee_id: str,
        checkout_token: Optional[str]
    ) -> Result[CheckoutReceipt]:
        # 2. Revalidación de stock con datos frescos
        self._transition(CheckoutState.validating)
        validated = await self.stock_validator.validate_cart(cart)
        if not validated.ok:
            error = validated.error
            if error.code == ErrorCode.insufficient_stock:
                # Las líneas pasaron la verificación al agregarse: otra venta consumió el stock
                logger.warning(f"⚠️ Stock de {error.sku} cambió durante la sesión (disponible: {error.remaining})")
                error = PosError.stock_conflict(error.sku, error.remaining)
            return self._rollback(error)

        # 3. Escritura atómica
        self._transition(CheckoutState.committing)
        change = self.pricing.compute_change(pay, subtotal)
        header = SaleHeaderData(
            exchange_rate_id=exchange_rate.id,
            customer_id=customer_id,
            employee_id=employee_id,
            sale_date=datetime.now(),
            subtotal=subtotal,
            pay=pay,
            change=change,
            checkout_token=checkout_token
        )
        lines = [
            SaleLineData(
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total
            )
            for line in cart.lines
        ]

        try:
            sale = await self._write(header, lines)
        except StockConflict as e:
            logger.warning(f"⚠️ Conflicto de stock en {e.sku}; venta revertida")
            return self._rollback(PosError.stock_conflict(e.sku))
        except CommitCancelled:
            logger.error(f"❌ Escritura de venta abortada tras {self.commit_timeout}s; venta revertida")
            return self._rollback(
                PosError.commit_failure(f"La escritura superó el tiempo límite ({self.commit_timeout}s)")
            )
        except SQLAlchemyError as e:
            logger.error(f"❌ Error registrando venta: {e}")
            return self._rollback(PosError.commit_failure(f"Error registrando venta: {str(e)}"))

        self._transition(CheckoutState.committed)
        logger.info(
            f"✅ Venta {sale.id} registrada - {len(lines)} líneas, "
            f"total {subtotal}, tasa {exchange_rate.id}"
        )

        return Result.success(CheckoutReceipt(
            sale_id=sale.id,
            change=change,
            subtotal=subtotal,
            pay=pay,
            exchange_rate_id=exchange_rate.id,
            sale_date=header.sale_date,
            items_count=len(lines)
        ))

    async def _write(self, header: SaleHeaderData, lines: List[SaleLineData]):
        """
        Ejecutar la transacción en el threadpool. Si vence el tiempo límite o
        se cancela la tarea, se marca el aborto: la transacción hace rollback
        si aún no llegó al commit. En ambos casos se espera el desenlace real
        del hilo, así el resultado reportado coincide con la base de datos y
        la sesión no se cierra con una escritura en curso.
        """
        abort = threading.Event()
        work = asyncio.ensure_future(
            run_in_threadpool(self.repository.commit_sale, header, lines, abort.is_set)
        )

        try:
            return await asyncio.wait_for(asyncio.shield(work), timeout=self.commit_timeout)
        except asyncio.TimeoutError:
            abort.set()
            return await work
        except asyncio.CancelledError:
            abort.set()
            # El hilo usa la sesión de la request: esperar a que la suelte antes de propagar
            try:
                sale = await asyncio.shield(work)
                logger.warning(f"⚠️ Cobro cancelado con la venta {sale.id} ya confirmada")
            except Exception as e:
                logger.warning(f"⚠️ Cobro cancelado; escritura no confirmada ({e})")
            raise
