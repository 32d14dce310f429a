from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    SERVICE_NAME: str = "seedshop-orders"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "seed_shop"
    POSTGRES_USER: str = "seedshop"
    POSTGRES_PASSWORD: str = "seedshop"
    # Full SQLAlchemy URL; takes precedence over the POSTGRES_* values
    DATABASE_URL: Optional[str] = None

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT: float = 30.0
    DB_CONNECT_ATTEMPTS: int = 30
    DB_CONNECT_DELAY: float = 1.0

    RUN_MIGRATIONS: bool = True

    class Config:
        env_file = ".env"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def expose_errors(self) -> bool:
        """Internal error messages are only returned outside production."""
        return self.ENVIRONMENT.lower() != "production"

@lru_cache
def get_settings() -> Settings:
    return Settings()
