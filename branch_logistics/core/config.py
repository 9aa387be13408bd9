import os
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Настройки приложения
    PROJECT_NAME: str = "Branch Logistics"
    DEBUG: bool = False

    # Настройки базы данных
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "branch_logistics"

    @property
    def database_url(self) -> str:
        """Асинхронный URL для подключения к базе данных."""
        # Используем DATABASE_URL из env если задан, иначе строим из компонентов
        env_db_url = os.getenv("DATABASE_URL")
        if env_db_url:
            return env_db_url
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Роли: глобальные видят все филиалы, привилегированные могут отменять чужие заказы
    GLOBAL_ROLES: set[str] = Field(default={"SUPER_ADMIN", "MANAGEMENT"})
    PRIVILEGED_ROLES: set[str] = Field(default={"SUPER_ADMIN", "MANAGEMENT", "ADMIN_AFFAIRS"})

    # Нумерация заказов на перемещение: TO-YYYYMMDD-NNN
    ORDER_NUMBER_PREFIX: str = "TO"
    ORDER_NUMBER_RETRIES: int = 3
    MIN_REJECTION_REASON_LENGTH: int = 5

    # Доставка уведомлений из outbox
    NOTIFY_WEBHOOK_URL: str | None = Field(default=None)
    NOTIFY_WEBHOOK_TOKEN: str | None = Field(default=None)
    OUTBOX_POLL_SECONDS: int = 30
    OUTBOX_BATCH_SIZE: int = 100
    SCHEDULER_TIMEZONE: str = "Africa/Cairo"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = Settings()
