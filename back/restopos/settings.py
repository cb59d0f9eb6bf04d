from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


_PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    """
    App configuration.

    Values come from `config.env` (non-dot env file) or `.env`, looked up in the
    repository root first and then in the current working directory.
    """

    model_config = SettingsConfigDict(
        env_file=(
            str(_PROJECT_ROOT / "config.env"),
            str(_PROJECT_ROOT / ".env"),
            "config.env",
            ".env",
        ),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field(default="development", validation_alias="ENVIRONMENT")

    # A full URL wins over the individual DB_* parts.
    database_url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    db_host: str | None = Field(default=None, validation_alias="DB_HOST")
    db_port: int = Field(default=5432, validation_alias="DB_PORT")
    db_user: str = Field(default="pos", validation_alias="DB_USER")
    db_password: str = Field(default="pos", validation_alias="DB_PASSWORD")
    db_name: str = Field(default="pos", validation_alias="DB_NAME")

    session_secret_key: str = Field(
        default="CHANGE_THIS_IN_PRODUCTION", validation_alias="SESSION_SECRET_KEY"
    )
    session_max_age_seconds: int = Field(default=12 * 60 * 60, validation_alias="SESSION_MAX_AGE_SECONDS")

    delete_batch_size: int = Field(default=100, validation_alias="DELETE_BATCH_SIZE")

    # CORS configuration
    cors_origins: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS"
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def database_url(self) -> str | None:
        """SQLAlchemy URL, or None when no database is configured."""
        if self.database_url_override:
            return self.database_url_override
        if not self.db_host:
            return None
        # SQLModel uses SQLAlchemy under the hood; this uses the psycopg driver (v3).
        return (
            f"postgresql+psycopg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


settings = Settings()
