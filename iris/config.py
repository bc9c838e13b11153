"""Iris configuration — loaded from environment variables and .env file."""

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parent.parent / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Airtable
    airtable_api_key: str = ""
    airtable_api_url: str = "https://api.airtable.com/v0"
    airtable_base_id: str = ""
    airtable_submissions_table: str = ""
    airtable_carriers_table: str = ""
    airtable_commissions_table: str = "Commissions2"
    airtable_timeout_seconds: float = 15.0
    airtable_max_retries: int = 3

    # Submission cache
    database_url: str = "sqlite:///./data/iris.db"
    submission_cache_ttl_seconds: int = 3600

    # Enrollment autofill
    enrollment_url: str = ""
    autofill_headless: bool = False
    autofill_save_dependents: bool = False
    autofill_step_delay_ms: int = 100
    autofill_timeout_seconds: int = 60

    # API
    iris_api_key: str = ""
    iris_api_port: int = 8002

    # Logging
    log_level: str = "INFO"


settings = Settings()
