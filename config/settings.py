"""
Environment settings for the story server
"""

import os
from functools import lru_cache
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Provider selection (openai / mock)
    AI_PROVIDER: str = os.getenv("AI_PROVIDER", "openai")

    # OpenAI; API_KEY is the legacy variable name
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", os.getenv("API_KEY", ""))
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")
    OPENAI_IMAGE_MODEL: str = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")
    IMAGE_SIZE: str = os.getenv("IMAGE_SIZE", "1024x1024")
    DESCRIBE_MAX_TOKENS: int = int(os.getenv("DESCRIBE_MAX_TOKENS", "2000"))

    # Retry / timeout
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "5"))
    RETRY_BACKOFF_BASE: float = float(os.getenv("RETRY_BACKOFF_BASE", "1.0"))
    MAX_RETRY_DELAY: float = float(os.getenv("MAX_RETRY_DELAY", "30"))
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "60"))

    # Content rules
    MIN_DESCRIPTION_PARAGRAPHS: int = int(os.getenv("MIN_DESCRIPTION_PARAGRAPHS", "5"))

    # Downloaded images are staged here before PDF assembly
    SCRATCH_DIR: str = os.getenv("SCRATCH_DIR", "temp")

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3003"))
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")
    LEGACY_ERRORS: bool = os.getenv("LEGACY_ERRORS", "false").lower() == "true"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        extra = "ignore"

    def get_available_providers(self) -> dict:
        return {
            "openai": bool(self.OPENAI_API_KEY),
            "mock": True
        }

    def get_cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def validate_settings(self) -> list:
        """Return human-readable configuration warnings"""
        warnings = []

        if self.AI_PROVIDER not in ["mock", "openai"]:
            warnings.append(f"Unknown AI_PROVIDER: {self.AI_PROVIDER}")

        if self.AI_PROVIDER == "openai" and not self.OPENAI_API_KEY:
            warnings.append("OpenAI selected but no API key is set; falling back to mock provider.")

        if self.MAX_RETRIES < 1:
            warnings.append("MAX_RETRIES below 1; every call gets a single attempt.")

        if self.MAX_RETRY_DELAY < 0:
            warnings.append("MAX_RETRY_DELAY must not be negative.")

        if self.REQUEST_TIMEOUT <= 0:
            warnings.append("REQUEST_TIMEOUT must be positive.")

        return warnings


@lru_cache
def get_settings() -> Settings:
    return Settings()
