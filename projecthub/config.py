"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings (backing store for the document tree)
    db_server: str = "localhost"
    db_name: str = "projecthub"
    db_user: str = "projecthub"
    db_password: str = ""
    db_port: int = 5432
    db_pool_size: int = 20
    db_max_overflow: int = 40
    sql_echo: bool = False
    auto_create_tables: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Redis settings (project locks and the ARQ job queue)
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 50
    redis_socket_timeout: float = 5.0
    redis_retry_on_timeout: bool = True
    redis_required: bool = False  # Set True to refuse startup without locking

    # Document store settings
    # Maximum writes/deletes per atomic batch (Firestore-compatible default)
    store_max_batch_size: int = 500

    # Archive/restore lock TTL, long enough for a large project graph
    project_lock_ttl_seconds: int = 600

    # Notification settings
    # Day boundaries for reminder deduplication are computed in this zone
    notification_timezone: str = "UTC"
    notification_preview_length: int = 100

    # Due-date reminder sweep
    # Todos due between today and today + N days get a reminder
    reminder_lookahead_days: int = 1

    # ARQ Worker settings
    # Reminder sweep: runs at these hours (comma-separated, 24h format)
    # Default "9" = once a day at 09:00
    arq_reminder_hours: str = "9"

    @property
    def database_url(self) -> str:
        """Build PostgreSQL async connection string."""
        from urllib.parse import quote_plus
        return (
            f"postgresql+asyncpg://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )

    @property
    def sync_database_url(self) -> str:
        """Build PostgreSQL sync connection string for Alembic."""
        from urllib.parse import quote_plus
        return (
            f"postgresql+psycopg2://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )


# Global settings instance
settings = Settings()
