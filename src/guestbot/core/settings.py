"""Runtime configuration for the GuestBot API.

Values come from the environment, falling back to development defaults.

Security policy constants (rate limit tables, lockout thresholds, length
caps, fetch bounds) are not settings; they live beside the component that
enforces them and cannot be changed per deployment.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """GuestBot runtime configuration.

    Each field maps to the environment variable named in its alias; a local
    .env file is read as well.
    """

    # Application metadata
    app_name: str = Field(default="GuestBot", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Token signing for guest sessions and owner access
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    guest_session_ttl_minutes: int = Field(default=60 * 24, alias="GUEST_SESSION_TTL_MINUTES")

    # Persistent document store
    document_store_backend: Literal["memory", "sql", "redis"] = Field(
        default="sql",
        alias="DOCUMENT_STORE_BACKEND",
    )
    database_url: str = Field(default="sqlite:///./guestbot.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # LLM service (treated as a black box behind an HTTP endpoint)
    llm_endpoint_url: str | None = Field(default=None, alias="LLM_ENDPOINT_URL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_timeout_seconds: float = Field(default=30.0, alias="LLM_TIMEOUT_SECONDS")

    # Reverse proxies in front of the API. Each one appends the address it
    # received the request from to X-Forwarded-For; 0 means the peer address
    # is the caller and the header is ignored.
    trusted_proxy_hops: int = Field(default=0, ge=0, alias="TRUSTED_PROXY_HOPS")

    # CORS configuration for the guest web app
    cors_origins: list[str] = Field(
        default=["https://guestbot-ai.web.app"],
        alias="CORS_ORIGINS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def llm_enabled(self) -> bool:
        """Return True when an LLM endpoint has been configured."""
        return bool(self.llm_endpoint_url)


settings = Settings()
