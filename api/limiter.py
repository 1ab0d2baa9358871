"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Per-IP throttling of credential endpoints belongs here, at the HTTP layer.
Per-account lockout is a separate concern handled by auth/lockout.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Read once at import, like every other setting consumed by the HTTP layer.
AUTH_RATE_LIMIT: str = get_settings().auth_rate_limit
