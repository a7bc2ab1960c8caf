# app/modules/exchange_rates/repository.py
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import desc

from app.shared.database.models import ExchangeRate
from .schemas import ExchangeRateSnapshot

class ExchangeRateProvider:
    """
    Acceso a las tasas de cambio. Solo lectura e inserción: las tasas no se
    modifican ni se borran porque las ventas quedan ligadas a su id
    """

    def __init__(self, db: Session):
        self.db = db

    def latest(self) -> Optional[ExchangeRateSnapshot]:
        """
        Última tasa registrada, o None si todavía no existe ninguna
        """
        rate = self.db.query(ExchangeRate).order_by(
            desc(ExchangeRate.created_date), desc(ExchangeRate.id)
        ).first()
        return ExchangeRateSnapshot.model_validate(rate) if rate else None

    def get(self, rate_id: int) -> Optional[ExchangeRateSnapshot]:
        rate = self.db.query(ExchangeRate).filter(ExchangeRate.id == rate_id).first()
        return ExchangeRateSnapshot.model_validate(rate) if rate else None

    def history(self, limit: int = 50) -> List[ExchangeRateSnapshot]:
        """
        Historial de tasas, más reciente primero
        """
        rates = self.db.query(ExchangeRate).order_by(
            desc(ExchangeRate.created_date), desc(ExchangeRate.id)
        ).limit(limit).all()
        return [ExchangeRateSnapshot.model_validate(r) for r in rates]

    def record(self, usd_rate: Decimal, thb_rate: Decimal) -> ExchangeRateSnapshot:
        """
        Registrar una nueva tasa (crea un snapshot nuevo, nunca actualiza)
        """
        rate = ExchangeRate(usd_rate=usd_rate, thb_rate=thb_rate)

        self.db.add(rate)
        self.db.commit()
        self.db.refresh(rate)

        return ExchangeRateSnapshot.model_validate(rate)
