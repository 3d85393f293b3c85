from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Document store
    MONGO_URI: str | None = None
    MONGO_HOST: str = "localhost"
    MONGO_PORT: int = 27017
    MONGO_DATABASE: str = "default_database"
    MONGO_COMPRESSION_LEVEL: int = Field(default=6, ge=0, le=9)
    MONGO_COMPRESSORS: list[str] = ["zlib"]
    MONGO_TIMEOUT_MS: int = 5000  # Bounds server selection for every store call

    # Backend
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    APP_DEBUG: bool = True
    API_PREFIX: str = "/api/v1"
    ALLOWED_ORIGINS: list[str] = ["http://localhost", "http://localhost:5000"]

    # Documentation
    DOCS_ENABLED: bool = True
    DOCS_PATH: str = "/docs"

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False  # True for production (structured JSON), False for dev (colored)
    SLOW_REQUEST_MS: float = 1000

    @property
    def mongo_uri(self) -> str:
        return self.MONGO_URI or f"mongodb://{self.MONGO_HOST}:{self.MONGO_PORT}"

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
