import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .cache import CACHE_TTL_SECONDS
from .maps_service import PLACEHOLDER_API_KEY
from .request_queue import REQUEST_DELAY_SECONDS

logger = logging.getLogger(__name__)


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Invalid value for %s: %r, using default %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Negative value for %s: %r, using default %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    google_maps_api_key: Optional[str] = None
    cache_ttl_seconds: float = CACHE_TTL_SECONDS
    request_delay_seconds: float = REQUEST_DELAY_SECONDS
    maps_max_workers: int = 10
    host: str = '0.0.0.0'
    port: int = 5001
    log_level: str = 'INFO'
    log_file: str = 'app.log'

    @property
    def has_api_key(self) -> bool:
        return bool(self.google_maps_api_key) and self.google_maps_api_key != PLACEHOLDER_API_KEY

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Read settings from the environment, loading .env first"""
        if dotenv:
            load_dotenv()
        return cls(
            google_maps_api_key=os.getenv('GOOGLE_MAPS_API_KEY'),
            cache_ttl_seconds=_env_number('CACHE_TTL_SECONDS', CACHE_TTL_SECONDS, float),
            request_delay_seconds=_env_number('REQUEST_DELAY_SECONDS', REQUEST_DELAY_SECONDS, float),
            maps_max_workers=max(1, _env_number('MAPS_MAX_WORKERS', 10, int)),
            host=os.getenv('HOST', '0.0.0.0'),
            port=_env_number('PORT', 5001, int),
            log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
            log_file=os.getenv('LOG_FILE', 'app.log'),
        )
