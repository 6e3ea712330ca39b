from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from functools import lru_cache


DEFAULT_SECRET_KEY = "development-secret-key-change-in-production"

# Secrets that must never reach production
WEAK_SECRET_KEYS = {
    DEFAULT_SECRET_KEY,
    "changeme",
    "secret",
    "password",
    "dev",
    "test",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/contact_segments"

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith('postgresql://'):
            return v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v

    # Auth
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Segment materialization
    SEGMENT_REFRESH_CHUNK_SIZE: int = 500
    SEGMENT_PREVIEW_SAMPLE_SIZE: int = 25
    SEGMENT_SCHEDULER_ENABLED: bool = False
    SEGMENT_REFRESH_INTERVAL_MINUTES: int = 60

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @model_validator(mode='after')
    def validate_production_settings(self) -> "Settings":
        """Reject insecure defaults outside development."""
        if self.is_production:
            if self.SECRET_KEY in WEAK_SECRET_KEYS or len(self.SECRET_KEY) < 32:
                raise ValueError("SECRET_KEY must be a strong value of at least 32 characters in production")
            self.DEBUG = False
        if self.SEGMENT_REFRESH_CHUNK_SIZE < 1:
            raise ValueError("SEGMENT_REFRESH_CHUNK_SIZE must be positive")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in ("production", "staging")

    @property
    def sqlalchemy_echo(self) -> bool:
        # Never echo SQL in production, statements may carry contact data
        return self.DEBUG and not self.is_production

    @property
    def DOCS_ENABLED(self) -> bool:
        return not self.is_production


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
