# app/modules/exchange_rates/__init__.py
"""
Módulo de Tasas de Cambio

- Consulta de la última tasa (snapshot usado en cada venta)
- Historial de tasas
- Registro de nuevas tasas (sin edición ni borrado, por auditoría)

Arquitectura:
- router.py: Endpoints FastAPI
- service.py: Lógica de negocio
- repository.py: Acceso a datos (ExchangeRateProvider)
- schemas.py: Modelos Pydantic de request/response
"""

from .router import router as exchange_rates_router
from .service import ExchangeRateService
from .repository import ExchangeRateProvider

__all__ = [
    "exchange_rates_router",
    "ExchangeRateService",
    "ExchangeRateProvider"
]
