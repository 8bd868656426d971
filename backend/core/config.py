"""Application settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Merchant Onboarding API"
    app_env: str = "local"
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:3000"
    cors_allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    database_url: str = "sqlite+aiosqlite:///./onboarding.db"
    redis_url: str = "redis://localhost:6379/0"

    jwt_secret_key: str = "change-me-access-token-secret"
    jwt_refresh_secret_key: str = "change-me-refresh-token-secret"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "onboarding-api"
    jwt_audience: str = "onboarding-app"
    access_token_expire_minutes: int = 15
    refresh_token_expire_minutes: int = 60 * 24 * 7
    max_active_refresh_tokens: int = 5
    password_reset_expire_minutes: int = 15
    bcrypt_rounds: int = 12
    token_hash_secret: str = "change-me-token-hash-secret"
    allow_insecure_http_cookies: bool = False

    registration_session_ttl_minutes: int = 120
    registration_require_verified_email: bool = False
    shop_handle_max_length: int = 30
    shop_handle_max_attempts: int = 999

    google_client_id: str = ""
    google_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"

    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 900
    rate_limit_trusted_proxies: list[str] = []
    rate_limit_ip_headers: list[str] = ["x-forwarded-for", "x-real-ip"]


settings = Settings()
