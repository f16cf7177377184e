"""Centralized application configuration via Pydantic Settings.

Loads all env vars into a typed Settings instance. Nothing else in the
service reads os.environ directly.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # CORS
    ALLOWED_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Comma-separated allowed origins for CORS",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Python log level")
    ENVIRONMENT: str = Field(
        default="development",
        description="Runtime environment: development, staging, production",
    )

    # App
    APP_VERSION: str = Field(default="0.1.0", description="Application version")

    # Uploads
    MAX_UPLOAD_BYTES: int = Field(
        default=10 * 1024 * 1024,
        description="Largest statement file accepted by the upload endpoint",
    )

    # AI extraction (PDF statements)
    OPENAI_API_KEY: str = Field(default="", description="API key for PDF transaction extraction")
    AI_EXTRACTION_MODEL: str = Field(
        default="gpt-4o-mini",
        description="Chat model used to extract transactions from PDF text",
    )
    AI_EXTRACTION_MAX_TOKENS: int = Field(
        default=4096,
        description="Response token limit for one extraction call",
    )

    @property
    def allowed_origins(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    model_config = {"env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Factory for Settings — allows test override."""
    return Settings()


settings = get_settings()
