from __future__ import annotations

from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_session import Session
from flask_wtf.csrf import CSRFProtect

__all__ = [
    "csrf",
    "cache",
    "limiter",
    "server_session",
]

csrf = CSRFProtect()
cache = Cache()

# Default limits come from RATELIMIT_DEFAULT in the app config.
limiter = Limiter(key_func=get_remote_address)
server_session = Session()
