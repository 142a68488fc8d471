"""
api/limiter.py -- Shared slowapi rate limiter for the vehicle routes.

api/main.py mounts it (SlowAPIMiddleware + app.state.limiter) and
api/routes/cars.py applies per-route limits with @limiter.limit(). A single
instance means every route counts against the same in-memory store.

Clients are keyed by remote address. Authentication routes carry no limits.
RATE_LIMIT_ENABLED=false turns every limit off (e.g. behind a gateway that
already throttles).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
