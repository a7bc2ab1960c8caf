# app/modules/sales/__init__.py
"""
Módulo de Ventas - Núcleo transaccional del punto de venta

- Carrito por sesión de cobro (CartAggregator)
- Verificación de stock al agregar y antes de cobrar (StockValidator)
- Conversión a USD / THB y cálculo del cambio (PricingEngine)
- Registro atómico de la venta con descuento condicional de inventario
  (SaleCommitCoordinator)

Arquitectura:
- router.py: Endpoints FastAPI
- service.py: Lógica de negocio de la sesión de cobro
- coordinator.py: Escritura atómica de la venta
- cart.py / stock.py / pricing.py: Componentes del core
- repository.py: Acceso a datos (ProductCatalog, SaleRepository)
- schemas.py: Modelos Pydantic de request/response
- errors.py: Errores tipados y Result
"""

from .router import router as sales_router
from .service import SalesService
from .repository import ProductCatalog, SaleRepository

__all__ = [
    "sales_router",
    "SalesService",
    "ProductCatalog",
    "SaleRepository"
]
