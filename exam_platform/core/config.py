from typing import Dict, List, Optional
from pydantic_settings import BaseSettings
import os
from dotenv import load_dotenv

load_dotenv()


def _parse_amounts(raw: str) -> List[float]:
    return [float(part) for part in raw.split(",") if part.strip()]


def _parse_price_table(raw: str) -> Dict[int, float]:
    """"60:3,120:5" -> {60: 3.0, 120: 5.0}"""
    table = {}
    for part in raw.split(","):
        if not part.strip():
            continue
        minutes, price = part.split(":", 1)
        table[int(minutes)] = float(price)
    return table


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./exam_platform.db")

    # CORS
    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173")

    # App
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", "True").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Expiry sweep
    SWEEP_ENABLED: bool = os.getenv("SWEEP_ENABLED", "True").lower() == "true"
    SWEEP_INTERVAL_SECONDS: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", "60"))
    SWEEP_BATCH_SIZE: int = int(os.getenv("SWEEP_BATCH_SIZE", "200"))

    # Attempts
    ALLOW_RETAKES: bool = os.getenv("ALLOW_RETAKES", "False").lower() == "true"

    # Pricing and prizes
    PRIZE_AMOUNTS: str = os.getenv("PRIZE_AMOUNTS", "10,7,3")
    EXAM_PRICES: str = os.getenv("EXAM_PRICES", "60:3,120:5,180:10")
    DEFAULT_EXAM_PRICE: float = float(os.getenv("DEFAULT_EXAM_PRICE", "3"))
    TEACHER_SPLIT_PERCENTAGE: float = float(os.getenv("TEACHER_SPLIT_PERCENTAGE", "50"))
    ADMIN_ACCOUNT_ID: Optional[int] = int(os.environ["ADMIN_ACCOUNT_ID"]) if os.getenv("ADMIN_ACCOUNT_ID") else None
    PRIZE_AWARD_DELAY_MINUTES: int = int(os.getenv("PRIZE_AWARD_DELAY_MINUTES", "10"))

    # Leaderboard
    LEADERBOARD_INCLUDE_TIMED_OUT: bool = os.getenv("LEADERBOARD_INCLUDE_TIMED_OUT", "False").lower() == "true"
    PERCENTAGE_PRECISION: int = int(os.getenv("PERCENTAGE_PRECISION", "2"))

    class Config:
        case_sensitive = True

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def prize_amounts(self) -> List[float]:
        return _parse_amounts(self.PRIZE_AMOUNTS)

    @property
    def exam_prices(self) -> Dict[int, float]:
        return _parse_price_table(self.EXAM_PRICES)

    def price_for_duration(self, duration_minutes: int) -> float:
        """Price of an exam that does not carry its own price"""
        return self.exam_prices.get(duration_minutes, self.DEFAULT_EXAM_PRICE)


settings = Settings()
