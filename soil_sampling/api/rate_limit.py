"""
Shared rate limiter.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from soil_sampling.config import settings


limiter = Limiter(key_func=get_remote_address)

# Applied to endpoints that fan out to the external geodata services
EXTERNAL_RATE_LIMIT = f"{settings.rate_limit_requests}/minute"
