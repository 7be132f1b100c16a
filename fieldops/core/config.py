from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./fieldops.db"
    ENVIRONMENT: str = "development"  # "development" or "production"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # External collaborators
    DIRECTIONS_PROVIDER: str = "none"  # "graphhopper" or "none"
    GRAPHHOPPER_API_KEY: Optional[str] = None
    WEATHER_PROVIDER: str = "none"  # "openweather" or "none"
    OPENWEATHER_API_KEY: Optional[str] = None
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = 10.0

    # Estimation defaults
    AVERAGE_SPEED_KMH: float = 50.0
    DEFAULT_FUEL_CONSUMPTION: float = 8.0  # L/100km
    DEFAULT_FUEL_PRICE_PER_LITER: float = 1.5
    DEFAULT_ELECTRICITY_PRICE_PER_KWH: float = 0.12

    # Planning defaults
    DEFAULT_MAX_TASKS_PER_TEAM: int = 8
    DEFAULT_MAX_ROUTE_TIME_MINUTES: int = 480
    DEFAULT_MAX_ROUTE_DISTANCE_KM: float = 200.0
    ROUTE_DAY_START: str = "08:00"
    STOP_TRAVEL_BUFFER_MINUTES: int = 15

    PROGRESS_UPDATE_MAX_RETRIES: int = 3

    @property
    def is_sqlite(self):
        return self.DATABASE_URL.startswith("sqlite")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
