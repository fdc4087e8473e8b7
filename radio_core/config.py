from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Persistence
    STATE_PATH: str = "./data/radio.json"
    PERSIST_ENABLED: bool = True
    SEED_ON_FIRST_RUN: bool = True

    # Behavioral events
    MIN_SESSION_SECONDS: float = 10
    BOOKMARK_TOLERANCE_SECONDS: float = 1.0
    TOP_POSITION_CUTOFF: int = 3
    TOP_SKIP_WEIGHT: float = 2.0
    DEFAULT_SKIP_WEIGHT: float = 1.0

    # Engagement ranking
    RECENCY_WEIGHT: float = 0.3
    ENGAGEMENT_WEIGHT: float = 0.7
    RECENCY_HALF_LIFE_HOURS: float = 168  # 1 week
    CONFIDENCE_ALPHA: float = 40
    STAR_WEIGHT: float = 1.0
    SKIP_WEIGHT: float = 0.3  # subtracted
    COMPLETION_WEIGHT: float = 0.5

    # Peaks
    PEAK_CLUSTER_GAP_SECONDS: float = 30
    PEAK_MAX_COUNT: int = 10
    PEAK_GUARD_SECONDS: float = 1.0

    # Smart categories
    RECENT_WINDOW_DAYS: int = 7
    SMART_CATEGORY_LIMIT: int = 5

    # Player settings
    DEFAULT_VOLUME: float = 0.7

    # System
    LOG_LEVEL: str = "INFO"
    HTTP_SERVER_HOST: str = "127.0.0.1"
    HTTP_SERVER_PORT: int = 8080
    HTTP_SERVER_TOKEN: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

settings = Settings()
