# app/modules/exchange_rates/router.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from .service import ExchangeRateService
from .schemas import ExchangeRateSnapshot, ExchangeRateCreateRequest, ExchangeRateHistoryResponse

router = APIRouter(prefix="/exchange-rates", tags=["Exchange Rates"])

@router.get("/latest", response_model=ExchangeRateSnapshot)
async def get_latest_exchange_rate(db: Session = Depends(get_db)):
    """
    Última tasa de cambio registrada (USD y THB)
    """
    service = ExchangeRateService(db)

    snapshot = await service.get_latest()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No hay tasa de cambio registrada")

    return snapshot

@router.get("/history", response_model=ExchangeRateHistoryResponse)
async def get_exchange_rate_history(
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """
    Historial de tasas de cambio, más reciente primero
    """
    service = ExchangeRateService(db)

    rates = await service.get_history(limit)

    return ExchangeRateHistoryResponse(success=True, rates=rates, count=len(rates))

@router.post("", response_model=ExchangeRateSnapshot, status_code=201)
async def create_exchange_rate(
    rate_data: ExchangeRateCreateRequest,
    db: Session = Depends(get_db)
):
    """
    Registrar una nueva tasa de cambio

    Las tasas no se editan ni se eliminan: cada venta queda ligada
    al snapshot usado al momento del cobro.
    """
    service = ExchangeRateService(db)

    return await service.record_rate(rate_data.usd_rate, rate_data.thb_rate)
