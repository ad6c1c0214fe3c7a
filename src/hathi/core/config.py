"""
Application Configuration

Centralized settings management using Pydantic BaseSettings.
All values are loaded from environment variables or .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable binding.

    Required env vars (no defaults):
        POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_DB

    Optional env vars:
        POSTGRES_PORT (5432), DATABASE_URL_OVERRIDE (None),
        HATHI_API_KEY (None - API disabled), LOG_LEVEL (INFO)
    """

    PROJECT_NAME: str = "Hathi Notes"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str
    # Full SQLAlchemy async URL, e.g. sqlite+aiosqlite:///./hathi.db
    DATABASE_URL_OVERRIDE: str | None = None

    # Agent API
    HATHI_API_KEY: str | None = None

    # Logging
    LOG_LEVEL: str = "INFO"

    # Query defaults
    SEARCH_DEFAULT_THRESHOLD: float = 0.7
    SEARCH_DEFAULT_LIMIT: int = 10
    FILTER_DEFAULT_LIMIT: int = 20
    FILTER_MAX_LIMIT: int = 50
    CONTEXT_STATS_PAGE_SIZE: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",  # Silently ignore unknown env vars
    )

    @property
    def DATABASE_URL(self) -> str:
        """Async connection string (asyncpg unless overridden)."""
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )


settings = Settings()  # type: ignore[call-arg]
