# app/modules/sales/service.py
import asyncio
import logging
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.modules.exchange_rates.service import ExchangeRateService
from app.shared.database.models import Sale
from .cart import Number
from .coordinator import SaleCommitCoordinator
from .errors import ErrorCode, PosError, Result
from .pricing import PricingEngine
from .repository import ProductCatalog, SaleRepository
from .schemas import (
    CartLine, CartTotals, CheckoutReceipt, CheckoutState,
    ProductInfo, SaleResponse
)
from .session import CheckoutSession
from .stock import StockValidator

logger = logging.getLogger(__name__)

class SalesService:
    """
    Servicio principal del punto de venta: carrito, totales y cobro
    de una sesión
    """

    def __init__(
        self,
        db: Session,
        commit_timeout: Optional[float] = None,
        exchange_rate_fallback: Optional[bool] = None
    ):
        self.db = db
        self.catalog = ProductCatalog(db)
        self.repository = SaleRepository(db)
        self.exchange_rates = ExchangeRateService(db)
        self.stock_validator = StockValidator(self.catalog)
        self.pricing = PricingEngine()
        self.commit_timeout = commit_timeout or settings.commit_timeout_seconds
        self.exchange_rate_fallback = (
            settings.exchange_rate_fallback_enabled
            if exchange_rate_fallback is None else exchange_rate_fallback
        )

    # ==================== CATÁLOGO ====================

    async def lookup_product(self, sku: str) -> Result[ProductInfo]:
        return await self.stock_validator.lookup(sku)

    async def search_products(self, term: str, limit: int = 20) -> List[ProductInfo]:
        products = await run_in_threadpool(self.catalog.search, term, limit)
        return [ProductInfo.model_validate(p) for p in products]

    # ==================== CARRITO ====================

    async def add_to_cart(self, session: CheckoutSession, sku: str, quantity: int) -> Result[CartLine]:
        """
        Agregar un producto al carrito verificando stock contra el catálogo.
        El total verificado incluye lo que ya hay del mismo SKU en el carrito.
        """
        if session.is_busy:
            return Result.failure(PosError.validation("Hay un cobro en curso; el carrito no se puede modificar"))

        resolved = await self._resolve_unknown_outcome(session)
        if not resolved.ok:
            return resolved

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return Result.failure(
                PosError.validation(f"La cantidad debe ser un entero mayor a 0 (recibido: {quantity})", sku=sku)
            )

        requested = session.cart.quantity_of(sku) + quantity
        checked = await self.stock_validator.check_availability(sku, requested)
        if not checked.ok:
            return checked

        product = checked.value
        added = session.cart.add_line(
            sku,
            quantity,
            product.retail_price,
            name=product.product_name,
            unit=product.unit
        )
        if added.ok:
            self._reopen(session)

        return added

    async def remove_from_cart(self, session: CheckoutSession, sku: str) -> Result[None]:
        if session.is_busy:
            return Result.failure(PosError.validation("Hay un cobro en curso; el carrito no se puede modificar"))

        resolved = await self._resolve_unknown_outcome(session)
        if not resolved.ok:
            return resolved

        removed = session.cart.remove_line(sku)
        if removed.ok:
            self._reopen(session)

        return removed

    def cancel(self, session: CheckoutSession) -> Result[None]:
        """Cancelar la venta en curso: las líneas se descartan sin persistir"""
        if session.is_busy:
            return Result.failure(PosError.validation("Hay un cobro en curso; no se puede cancelar"))

        # Token nuevo: lo cancelado no debe confundirse con una venta anterior
        session.start_next_sale()
        return Result.success()

    async def _resolve_unknown_outcome(self, session: CheckoutSession) -> Result[None]:
        """
        Tras un fallo de almacenamiento, editar el carrito solo es seguro si
        la venta no llegó a registrarse
        """
        if not session.outcome_unknown:
            return Result.success()

        existing = await run_in_threadpool(
            self.repository.find_by_checkout_token, session.checkout_token
        )
        if existing is not None:
            return Result.failure(PosError.validation(
                f"La venta {existing.id} ya quedó registrada; cobre de nuevo para obtener el recibo"
            ))

        session.outcome_unknown = False
        return Result.success()

    def _reopen(self, session: CheckoutSession):
        # Editar tras un cobro fallido vuelve la sesión a borrador
        if session.state in (CheckoutState.rolled_back, CheckoutState.committed):
            session.transition(CheckoutState.draft)

    async def current_totals(self, session: CheckoutSession) -> CartTotals:
        """
        Totales recalculados en cada llamada: subtotal en kip y equivalentes
        en USD y THB según la última tasa
        """
        subtotal = session.cart.subtotal()
        snapshot = await self.exchange_rates.get_latest()

        if snapshot is None:
            logger.warning("⚠️ Sin tasa de cambio registrada; totales con tasa por defecto (modo degradado)")
            total_usd, total_thb = self.pricing.convert(
                subtotal, settings.default_usd_rate, settings.default_thb_rate
            )
            return CartTotals(subtotal=subtotal, total_usd=total_usd, total_thb=total_thb, degraded=True)

        total_usd, total_thb = self.pricing.convert(subtotal, snapshot.usd_rate, snapshot.thb_rate)
        return CartTotals(
            subtotal=subtotal,
            total_usd=total_usd,
            total_thb=total_thb,
            exchange_rate_id=snapshot.id
        )

    # ==================== COBRO ====================

    async def checkout(
        self,
        session: CheckoutSession,
        payment_amount: Number,
        customer_id: str,
        employee_id: str
    ) -> Result[CheckoutReceipt]:
        """
        Cobrar el carrito de la sesión. Solo se limpia el carrito si la venta
        quedó registrada.
        """
        if session.is_busy:
            return Result.failure(PosError.validation("Ya hay un cobro en curso para esta sesión"))

        # Un fallo de almacenamiento previo pudo haber escrito la venta igual
        if session.outcome_unknown:
            existing = await run_in_threadpool(
                self.repository.find_by_checkout_token, session.checkout_token
            )
            if existing is not None:
                logger.warning(
                    f"⚠️ La venta {existing.id} ya estaba registrada para el token "
                    f"{session.checkout_token}; no se vuelve a escribir"
                )
                session.start_next_sale()
                return Result.success(self._receipt_from_sale(existing))
            session.outcome_unknown = False

        coordinator = SaleCommitCoordinator(
            self.repository,
            self.stock_validator,
            pricing=self.pricing,
            commit_timeout=self.commit_timeout,
            on_transition=session.transition
        )

        snapshot = await self.exchange_rates.get_latest()
        if snapshot is None and self.exchange_rate_fallback:
            # Registrar la tasa por defecto solo si el cobro puede prosperar
            checked = coordinator.check_preconditions(session.cart, payment_amount)
            if not checked.ok:
                return Result.failure(checked.error)
            snapshot = await self.exchange_rates.record_default_rate()

        try:
            result = await coordinator.commit(
                session.cart,
                payment_amount,
                snapshot,
                customer_id,
                employee_id,
                checkout_token=session.checkout_token
            )
        except asyncio.CancelledError:
            # La escritura pudo confirmarse antes de la cancelación
            session.outcome_unknown = True
            raise

        if result.ok:
            session.start_next_sale()
        elif result.error.code == ErrorCode.commit_failure:
            session.outcome_unknown = True

        return result

    def _receipt_from_sale(self, sale: Sale) -> CheckoutReceipt:
        return CheckoutReceipt(
            sale_id=sale.id,
            change=sale.change,
            subtotal=sale.subtotal,
            pay=sale.pay,
            exchange_rate_id=sale.exchange_rate_id,
            sale_date=sale.sale_date,
            items_count=len(sale.items)
        )

    # ==================== CONSULTA DE VENTAS ====================

    async def get_sale(self, sale_id: int) -> Optional[SaleResponse]:
        sale = await run_in_threadpool(self.repository.get_sale_by_id, sale_id)
        return SaleResponse.model_validate(sale) if sale else None
