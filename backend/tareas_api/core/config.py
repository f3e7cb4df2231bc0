"""
Application settings, read from environment variables (and an optional .env).

Every value has a default so the service starts against a local MySQL with
no configuration at all.
"""

import json
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tareas_api.models import ProductTypeEnum


def parse_cors(v: Any) -> list[str] | str:
    """Accept a comma separated string or a JSON list."""
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    if isinstance(v, str):
        return json.loads(v)
    if isinstance(v, list):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "lista-tareas"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    BACKEND_CORS_ORIGINS: Annotated[list[str] | str, BeforeValidator(parse_cors)] = [
        "*"
    ]
    STATIC_DIR: str = "public"
    SENTRY_DSN: AnyUrl | None = None

    # Database connection
    DB_PRODUCT_TYPE: ProductTypeEnum = ProductTypeEnum.MYSQL
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "lista_tareas_db"
    DB_CONNECT_TIMEOUT: int = 10
    # Seconds; 0 disables both the client-side wait and the server statement timeout.
    DB_QUERY_TIMEOUT: float = 30.0

    # Reconnect policy
    DB_MAX_RETRIES: int = 10
    DB_RETRY_BASE_DELAY: float = 1.0
    DB_RETRY_BACKOFF: Literal["exponential", "linear"] = "exponential"
    DB_PING_INTERVAL: float = 30.0
    DB_WAIT_FOR_CONNECTION: bool = False
    DB_EXIT_ON_FAILURE: bool = False
    DB_CREATE_TABLE: bool = True

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        if isinstance(self.BACKEND_CORS_ORIGINS, str):
            return [self.BACKEND_CORS_ORIGINS]
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    @property
    def database_params(self) -> dict[str, Any]:
        """Connection parameters in the shape accepted by core.db.connect()."""
        return {
            "product_type": self.DB_PRODUCT_TYPE,
            "host": self.DB_HOST,
            "port": self.DB_PORT,
            "database": self.DB_NAME,
            "username": self.DB_USER,
            "password": self.DB_PASSWORD,
        }


settings = Settings()  # type: ignore
