"""Centralized configuration — all env vars in one place."""

import os

DEFAULT_JWT_SECRET = "change-me"


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # Storage
        self.database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./painel.db")
        self.redis_url: str | None = os.getenv("REDIS_URL")
        self.cache_max_entries: int = int(os.getenv("CACHE_MAX_ENTRIES", "1024"))
        self.cache_stale_seconds: int = int(os.getenv("CACHE_STALE_SECONDS", "86400"))

        # External providers
        self.quotes_api_url: str = os.getenv("QUOTES_API_URL", "https://economia.awesomeapi.com.br")
        self.quotes_api_key: str | None = os.getenv("QUOTES_API_KEY")
        self.fallback_rates_api_url: str = os.getenv("FALLBACK_RATES_API_URL", "https://open.er-api.com/v6")
        self.indices_api_url: str = os.getenv("INDICES_API_URL", "https://api.bcb.gov.br/dados/serie")
        self.news_api_url: str = os.getenv("NEWS_API_URL", "https://newsapi.org/v2")
        self.news_api_key: str | None = os.getenv("NEWS_API_KEY")
        self.news_query: str = os.getenv("NEWS_QUERY", 'economia OR "mercado financeiro" OR ibovespa')
        self.news_language: str = os.getenv("NEWS_LANGUAGE", "pt")
        self.http_timeout: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

        # Freshness windows
        self.quotes_ttl: int = int(os.getenv("QUOTES_TTL_SECONDS", "60"))
        self.indices_ttl: int = int(os.getenv("INDICES_TTL_SECONDS", "900"))
        self.news_ttl: int = int(os.getenv("NEWS_TTL_SECONDS", "600"))

        self.default_symbols: list[str] = [
            s.upper() for s in _csv(os.getenv("DEFAULT_SYMBOLS", "USD-BRL,EUR-BRL,GBP-BRL,BTC-BRL"))
        ]
        self.history_enabled: bool = _bool(os.getenv("HISTORY_ENABLED", "true"))
        self.poll_interval: int = int(os.getenv("POLL_INTERVAL_SECONDS", "0"))

        # Auth
        self.jwt_secret_key: str = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET)
        self.jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
        self.admin_emails: set[str] = {email.lower() for email in _csv(os.getenv("ADMIN_EMAILS", ""))}

        self.rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "60"))
        # Peers allowed to set X-Forwarded-For, e.g. the load balancer address
        self.trusted_proxies: set[str] = set(_csv(os.getenv("TRUSTED_PROXIES", "")))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of env vars that are missing or left at unsafe defaults."""
        missing = [var for var in ("NEWS_API_KEY",) if not getattr(self, _attr_for(var))]
        if self.is_production and self.jwt_secret_key == DEFAULT_JWT_SECRET:
            missing.append("JWT_SECRET_KEY")
        return missing


settings = Settings()


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    mapping = {
        "NEWS_API_KEY": "news_api_key",
        "JWT_SECRET_KEY": "jwt_secret_key",
    }
    return mapping.get(env_var, env_var.lower())
