"""
api/limiter.py -- The one slowapi Limiter for the process.

api/main.py mounts it (SlowAPIMiddleware + app.state.limiter) and
api/routes/auth.py decorates the login handler with it. Both must see the
same object: counters live in its memory:// storage, and a second Limiter
would count into a separate store that nothing enforces.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Limit string for POST /api/login, read from LOGIN_RATE_LIMIT at check time."""
    return get_settings().login_rate_limit
