"""Per-client rate limiting."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from fastapi import HTTPException, Request, status

from ..core.config import settings


EXEMPT_PATHS = {"/health", "/metrics"}


class RateLimiter:
    """Sliding one-minute window per client IP, kept in memory."""

    def __init__(self, requests_per_minute: Optional[int] = None):
        self.requests_per_minute = requests_per_minute or settings.RATE_LIMIT_RPM
        self.requests: Dict[str, List[datetime]] = defaultdict(list)

    async def check(self, request: Request) -> None:
        """
        Record the request, or reject it when the client is over the limit.

        Raises:
            HTTPException: 429 when the limit is exceeded
        """
        if request.url.path in EXEMPT_PATHS:
            return

        client_ip = request.client.host if request.client else "unknown"
        now = datetime.now()
        cutoff = now - timedelta(minutes=1)
        recent = [req_time for req_time in self.requests[client_ip] if req_time > cutoff]

        if len(recent) >= self.requests_per_minute:
            self.requests[client_ip] = recent
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Rate limit exceeded",
                    "message": f"Maximum {self.requests_per_minute} requests per minute allowed",
                    "retry_after": 60,
                },
            )

        recent.append(now)
        self.requests[client_ip] = recent

    def reset(self) -> None:
        self.requests.clear()


rate_limiter = RateLimiter()
