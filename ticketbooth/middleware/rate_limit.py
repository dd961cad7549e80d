from slowapi import Limiter
from slowapi.util import get_remote_address

from ticketbooth.config import get_settings

settings = get_settings()

# Shared by every router so limits are tracked in one place
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
