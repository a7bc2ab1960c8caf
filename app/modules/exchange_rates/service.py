# app/modules/exchange_rates/service.py
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.config.settings import settings
from .repository import ExchangeRateProvider
from .schemas import ExchangeRateSnapshot

logger = logging.getLogger(__name__)

class ExchangeRateService:

    def __init__(self, db: Session):
        self.db = db
        self.provider = ExchangeRateProvider(db)

    async def get_latest(self) -> Optional[ExchangeRateSnapshot]:
        return await run_in_threadpool(self.provider.latest)

    async def get_history(self, limit: int = 50) -> List[ExchangeRateSnapshot]:
        return await run_in_threadpool(self.provider.history, limit)

    async def record_rate(self, usd_rate: Decimal, thb_rate: Decimal) -> ExchangeRateSnapshot:
        """Registrar una tasa nueva; ambas tasas deben ser positivas"""
        try:
            usd = Decimal(str(usd_rate))
            thb = Decimal(str(thb_rate))
        except (InvalidOperation, ValueError):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tasa de cambio inválida"
            )

        if usd <= 0 or thb <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Las tasas deben ser mayores a 0 (USD: {usd}, THB: {thb})"
            )

        snapshot = await run_in_threadpool(self.provider.record, usd, thb)
        logger.info(f"✅ Tasa de cambio {snapshot.id} registrada - USD: {usd}, THB: {thb}")
        return snapshot

    async def record_default_rate(self) -> ExchangeRateSnapshot:
        """
        Modo degradado: persistir el par por defecto para que la venta quede
        ligada a un snapshot real
        """
        logger.warning(
            f"⚠️ Sin tasa de cambio registrada; registrando tasa por defecto "
            f"(USD: {settings.default_usd_rate}, THB: {settings.default_thb_rate})"
        )
        return await run_in_threadpool(
            self.provider.record, settings.default_usd_rate, settings.default_thb_rate
        )
