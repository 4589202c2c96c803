"""Application configuration from environment."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Load from .env in backend/ or parent directory (for docker-compose)
    model_config = SettingsConfigDict(
        env_file=[".env", "../.env"],
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    storage_backend: str = "sqlite"  # sqlite | redis | memory
    store_db_path: str = "data/incident_desk.db"  # Used when DATABASE_URL is not set (SQLite)
    database_url: str = ""  # Optional: e.g. sqlite:///data/incident_desk.db
    redis_url: str = ""  # e.g. redis://localhost:6379/0 (required for storage_backend=redis)
    db_storage_key: str = "icdi_local_db_v1"
    meta_storage_key: str = "icdi_local_meta_v1"
    seed_demo_data: bool = True

    # Analysis
    llm_provider: str = "local"  # only the local heuristic provider ships
    request_timeout: int = 30

    # Generators
    suggestion_limit: int = 6
    article_scan_limit: int = 200
    prediction_incident_window: int = 50

    log_level: str = "INFO"


settings = Settings()
