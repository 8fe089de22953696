"""Per-client request limits, counted per minute by remote address."""
import logging

from fastapi import Depends, HTTPException, Request, status
from limits import parse_many
from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import settings

logger = logging.getLogger(__name__)

# memory:// is per process; point RATE_LIMIT_STORAGE_URI at redis:// when running several workers
limiter = Limiter(key_func=get_remote_address, storage_uri=settings.RATE_LIMIT_STORAGE_URI)

TOO_MANY = "Too many requests, please try again later"
SLOW_DOWN = "Too many requests, please slow down"


def rate_limit(bucket: str, setting: str, message: str = TOO_MANY):
    """Build a dependency allowing ``settings.<setting>`` requests per minute per client.

    Each bucket keeps its own counter, so one route can sit under several
    limits at once (the general API limit plus a stricter one).
    """

    async def _check(request: Request) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return
        key = get_remote_address(request)
        item = parse_many(f"{getattr(settings, setting)}/minute")[0]
        if not request.app.state.limiter._limiter.hit(item, bucket, key):
            logger.warning(f"Rate limit '{bucket}' exceeded by {key}")
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=message)

    return Depends(_check)


api_rate_limit = rate_limit("api", "API_RATE_LIMIT")
auth_rate_limit = rate_limit("auth", "AUTH_RATE_LIMIT")
public_rate_limit = rate_limit("public", "PUBLIC_RATE_LIMIT")
write_rate_limit = rate_limit("write", "WRITE_RATE_LIMIT", message=SLOW_DOWN)
