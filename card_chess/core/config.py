"""Application configuration (environment variables prefixed with CARD_CHESS_, or a .env file)"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client and backend settings"""

    # Persistence service (client side)
    api_base_url: str = "http://localhost:3000"
    request_timeout: float = 2.0  # seconds
    max_retries: int = 3
    retry_delay: float = 1.0  # seconds, multiplied by the attempt number

    # Reconciliation
    poll_interval: float = 2.0  # seconds

    # Backend
    database_url: str = "sqlite:///./card_chess.db"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CARD_CHESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
