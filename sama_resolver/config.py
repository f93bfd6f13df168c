"""
Runtime settings, read from the environment (and a local .env file).
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_BASE_URL = "https://anime-sama.fr"
DEFAULT_STRATEGY_ORDER = ["script-array", "inline-embed", "free-text", "interactive"]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 12.0
    cache_enabled: bool = True
    cache_ttl: float = 300.0
    fetch_delay_min: float = 0.3          # pacing between sequential fetches
    fetch_delay_max: float = 0.8
    strategy_order: list[str] = field(default_factory=lambda: list(DEFAULT_STRATEGY_ORDER))
    rate_limit_max: int = 100             # requests per window per client
    rate_limit_window: float = 60.0
    log_level: str = "INFO"

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")
        if self.fetch_delay_max < self.fetch_delay_min:
            self.fetch_delay_max = self.fetch_delay_min


def load_settings() -> Settings:
    return Settings(
        base_url=os.getenv("BASE_URL", DEFAULT_BASE_URL),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "12")),
        cache_enabled=_env_bool("CACHE_ENABLED", True),
        cache_ttl=float(os.getenv("CACHE_TTL", "300")),
        fetch_delay_min=float(os.getenv("FETCH_DELAY_MIN", "0.3")),
        fetch_delay_max=float(os.getenv("FETCH_DELAY_MAX", "0.8")),
        strategy_order=_env_list("STRATEGY_ORDER", DEFAULT_STRATEGY_ORDER),
        rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "100")),
        rate_limit_window=float(os.getenv("RATE_LIMIT_WINDOW", "60")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
