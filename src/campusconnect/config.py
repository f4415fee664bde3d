from datetime import timedelta
from typing import Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str
    port: int
    debug: bool
    environment: str = "development"  # "production" forces secure cookies unless cookie_secure says otherwise
    # One signing secret per principal kind; rotating one invalidates every outstanding token of that kind
    member_token_secret: str
    admin_token_secret: str
    realtime_token_secret: str  # Signs bridge tokens for the WebSocket handshake only
    session_ttl_days: int = 7
    cache_ttl_seconds: float = 5.0  # Verification cache lifetime, far below the session TTL
    cache_prune_interval_seconds: float = 60.0
    realtime_token_ttl_seconds: int = 300
    realtime_handshake_timeout_seconds: float = 10.0
    store_timeout_seconds: float = 5.0  # Applied to every session store call
    cookie_secure: bool | None = None
    cors_origins: list[str] = []
    frontend_url: str = ""  # URL of the frontend application, e.g. https://campus.example.edu
    admin_signup_codes: list[str] = []  # Codes accepted when registering an administrator
    # Student IDs a member may register with, each usable by one member
    student_ids: list[str] = Field(default_factory=lambda: [f"ST{n}" for n in range(1, 101)])

    model_config = {
        "env_file": [".env"],
        "env_prefix": "CAMPUSCONNECT_",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def check_session_settings(self) -> Self:
        secrets = [self.member_token_secret, self.admin_token_secret, self.realtime_token_secret]
        if any(not secret for secret in secrets):
            raise ValueError("token secrets must not be empty")
        if len(set(secrets)) != len(secrets):
            raise ValueError("member, admin and realtime token secrets must all differ")
        if self.cache_ttl_seconds <= 0 or self.cache_ttl >= self.session_ttl:
            raise ValueError("cache_ttl_seconds must be positive and smaller than the session TTL")
        return self

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(days=self.session_ttl_days)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)
