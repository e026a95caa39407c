from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Rental Booking Core"
    ENVIRONMENT: str = "development"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_ERROR_FILE: str = "logs/errors.log" # empty string disables the file sink

    # Naive datetimes are interpreted in this zone
    TIMEZONE: str = "UTC"

    # Mock payment gateway
    DECLINED_PAYMENT_METHODS: List[str] = ["declined"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

settings = Settings()
