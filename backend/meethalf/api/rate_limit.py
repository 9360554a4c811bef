"""Rate limiting for the Google Maps proxy (slowapi, keyed by client address)."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from meethalf.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    enabled=_settings.rate_limit_enabled,
)
MAPS_RATE_LIMIT = _settings.maps_rate_limit
