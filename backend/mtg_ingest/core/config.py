"""
Application configuration settings.

All configuration is loaded from environment variables with sensible defaults.
"""
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    # Application
    app_name: str = "MTG Inventory Ingest"
    debug: bool = True

    # Database
    postgres_host: str = "db"
    postgres_port: int = 5432
    postgres_user: str = "mtg_user"
    postgres_password: str = "mtg_password"
    postgres_db: str = "mtg_inventory"
    database_url: str | None = None

    # Redis / Celery
    redis_url: str = "redis://redis:6379/0"
    celery_broker_url: str = "redis://redis:6379/0"
    celery_result_backend: str = "redis://redis:6379/0"

    # HTTP
    scraper_user_agent: str = "MTG-Inventory-Bot/1.0"
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 10.0

    # EDHREC (commander rankings and average decklists)
    # 2 seconds between requests, shared by every worker in the process
    edhrec_base_url: str = "https://edhrec.com"
    edhrec_json_url: str = "https://json.edhrec.com"
    edhrec_rate_limit_ms: int = 2000
    edhrec_top_commander_count: int = 20
    edhrec_max_retries: int = 3
    edhrec_backoff_base_seconds: float = 2.0
    decklist_min_cards: int = 75
    decklist_max_cards: int = 100
    decklist_scrape_interval_hours: int = 1

    # Scryfall (card catalog and prices)
    # Documented limit is 50-100ms between requests
    scryfall_base_url: str = "https://api.scryfall.com"
    scryfall_rate_limit_ms: int = 100

    # Price updates
    price_batch_size: int = 50
    price_batch_delay_seconds: float = 0.1

    # Price alerts
    price_alert_increase_threshold: float = 20.0
    price_alert_decrease_threshold: float = -30.0
    price_alert_dedup_hours: int = 24

    @field_validator("price_alert_decrease_threshold")
    @classmethod
    def decrease_threshold_is_negative(cls, v: float) -> float:
        """Decrease threshold is expressed as a negative percentage."""
        if v >= 0:
            raise ValueError("price_alert_decrease_threshold must be negative")
        return v

    @field_validator("decklist_max_cards")
    @classmethod
    def decklist_window_is_ordered(cls, v: int, info) -> int:
        minimum = info.data.get("decklist_min_cards", 0)
        if v < minimum:
            raise ValueError("decklist_max_cards must be >= decklist_min_cards")
        return v

    @property
    def database_url_computed(self) -> str:
        """Compute database URL from components if not explicitly set."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def rate_limit_intervals(self) -> dict[str, float]:
        """Minimum seconds between requests, keyed by service name."""
        return {
            "edhrec": self.edhrec_rate_limit_ms / 1000,
            "scryfall": self.scryfall_rate_limit_ms / 1000,
        }

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
