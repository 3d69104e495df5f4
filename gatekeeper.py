from typing import List, Optional
from urllib.parse import urlsplit

from exceptions import OriginRejected, SourceRateExceeded
from logging_config import get_logger
from ratelimit import SourceRateLimiter

logger = get_logger(__name__)


class Gatekeeper:
    """Admission checks run before a WebSocket is accepted.

    Origin first, then the per-source rate. Callers must not tell the client
    which check failed.
    """

    def __init__(self, allowed_origins: List[str], source_limiter: SourceRateLimiter):
        self.allowed_origins = set(allowed_origins)
        self.source_limiter = source_limiter

    def admit(self, origin: Optional[str], host: Optional[str], source: str) -> None:
        if not self.origin_allowed(origin, host):
            logger.warning(f"Connection from {source} rejected: origin {origin!r} not allowed")
            raise OriginRejected()

        if not self.source_limiter.hit(source):
            logger.warning(f"Connection from {source} rejected: source rate exceeded")
            raise SourceRateExceeded()

    def origin_allowed(self, origin: Optional[str], host: Optional[str]) -> bool:
        if self.allowed_origins:
            return origin in self.allowed_origins

        # Same-origin only. No Origin header means a non-browser client.
        if origin is None:
            return True
        if not host:
            return False
        try:
            origin_host = urlsplit(origin).netloc
        except ValueError:
            return False
        return bool(origin_host) and origin_host.lower() == host.strip().lower()


def source_address(client_host: Optional[str], forwarded_for: Optional[str], trust_proxy: bool) -> str:
    """Address used for per-source rate limiting."""
    if trust_proxy and forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return client_host or "unknown"
