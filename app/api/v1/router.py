# app/api/v1/router.py
from fastapi import APIRouter

from app.config.settings import settings
from app.modules.sales import sales_router
from app.modules.exchange_rates import exchange_rates_router

# Crear router principal de la API v1
api_router = APIRouter()

# ==================== MÓDULOS ====================

api_router.include_router(sales_router)

api_router.include_router(exchange_rates_router)

# ==================== ENDPOINTS RAÍZ ====================

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": "Mini POS API v1",
        "version": settings.version,
        "status": "active",
        "available_endpoints": {
            "pos": "/api/v1/pos",
            "exchange_rates": "/api/v1/exchange-rates"
        }
    }

@api_router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.version
    }
