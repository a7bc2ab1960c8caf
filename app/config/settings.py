from pydantic import Field
from pydantic_settings import BaseSettings
from decimal import Decimal
from typing import List

class Settings(BaseSettings):
    # App Info
    app_name: str = "Mini POS API"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./mini_pos.db"

    # CORS
    allowed_origins: List[str] = ["http://localhost:3000"]

    # Tasas de cambio por defecto (LAK por unidad de moneda extranjera)
    default_usd_rate: Decimal = Field(
        default=Decimal("23000"),
        description="Tasa USD usada en modo degradado cuando no hay tasa registrada"
    )
    default_thb_rate: Decimal = Field(
        default=Decimal("626"),
        description="Tasa THB usada en modo degradado cuando no hay tasa registrada"
    )
    exchange_rate_fallback_enabled: bool = Field(
        default=False,
        description="Si el checkout puede registrar la tasa por defecto cuando no existe ninguna"
    )

    # Checkout
    commit_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Tiempo máximo de la escritura atómica de una venta"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False

settings = Settings()
