# app/modules/sales/stock.py
from fastapi.concurrency import run_in_threadpool

from .cart import CartAggregator
from .errors import PosError, Result
from .repository import ProductCatalog
from .schemas import ProductInfo

class StockValidator:
    """
    Verificación de disponibilidad contra el stock actual del catálogo.

    Es una verificación optimista: da feedback inmediato al agregar y se
    repite antes de cobrar, pero la garantía real es el decremento
    condicional dentro de la transacción de la venta.
    """

    def __init__(self, catalog: ProductCatalog):
        self.catalog = catalog

    async def lookup(self, sku: str) -> Result[ProductInfo]:
        product = await run_in_threadpool(self.catalog.get_by_barcode, sku)
        if product is None:
            return Result.failure(PosError.not_found(f"Producto {sku} no encontrado", sku=sku))
        return Result.success(ProductInfo.model_validate(product))

    async def check_availability(self, sku: str, requested_quantity: int) -> Result[ProductInfo]:
        """
        ``requested_quantity`` es el total pedido para el SKU, incluyendo lo
        que ya está en el carrito
        """
        found = await self.lookup(sku)
        if not found.ok:
            return found

        product = found.value
        if requested_quantity > product.quantity:
            return Result.failure(PosError.insufficient_stock(sku, product.quantity))

        return found

    async def validate_cart(self, cart: CartAggregator) -> Result[None]:
        """
        Revalidar todas las líneas con el stock vigente antes de escribir
        """
        for line in cart.lines:
            checked = await self.check_availability(line.sku, line.quantity)
            if not checked.ok:
                return Result.failure(checked.error)

        return Result.success()
