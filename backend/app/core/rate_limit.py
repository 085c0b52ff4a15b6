"""
Shared rate limiter.
Lives outside main so endpoint modules can decorate routes without importing the app.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
