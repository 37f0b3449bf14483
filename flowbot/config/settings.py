# /flowbot/config/settings.py

import sys
from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # MongoDB
    mongo_uri: str
    mongo_db_name: str = "chatbot-flow"
    max_pool_size: int = 10
    min_pool_size: int = 1
    mongo_ssl: bool = False

    # Intent classification
    openai_api_key: str | None = None
    openai_model: str = "gpt-3.5-turbo"
    gemini_api_key: str | None = None
    gemini_model: str = "models/gemini-1.5-flash"
    intent_timeout_seconds: float = 10.0
    intent_temperature: float = 0.3
    intent_max_tokens: int = 50
    keyword_match_threshold: int = 80

    # Flow execution
    max_chain_steps: int = 0  # 0 = bounded by the configuration's block count

    # Deployment
    environment: str = "production"
    log_level: str = "INFO"
    workers: int = 2

    # HTTP surface
    api_prefix: str = "/api"
    rate_limit_per_minute: int = 100
    config_rate_limit_per_minute: int = 20
    api_key: str | None = None
    cors_allowed_origins: str = "*"

    # ---------------- Validators ---------------- #

    @field_validator("intent_timeout_seconds")
    @classmethod
    def timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("INTENT_TIMEOUT_SECONDS must be greater than zero")
        return v

    @field_validator("environment")
    @classmethod
    def environment_must_be_known(cls, v):
        if v not in ("production", "development", "test"):
            raise ValueError("ENVIRONMENT must be one of production, development, test")
        return v

    @property
    def cors_origins(self) -> List[str]:
        """Comma-separated CORS_ALLOWED_ORIGINS as a list."""
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    @property
    def has_ai_provider(self) -> bool:
        return bool(self.openai_api_key or self.gemini_api_key)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


def validate_environment(settings_obj: Settings):
    try:
        if not settings_obj.mongo_uri.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("MONGO_URI must be a mongodb:// or mongodb+srv:// connection string")

        if settings_obj.environment == "production" and not settings_obj.has_ai_provider:
            print("--- [WARNING] No AI API key configured; intents will be matched by keyword only.")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
