"""Request correlation IDs, carried into every log record of the request."""

import logging
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.logging import correlation_id_var


logger = logging.getLogger(__name__)

HEADER = "X-Correlation-ID"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a correlation ID to each request.

    An incoming X-Correlation-ID header is reused, otherwise a new UUID is
    generated. The ID is stored on request.state, set in the logging context
    variable for the duration of the request, and echoed in the response.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id

        token = correlation_id_var.set(correlation_id)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)

        response.headers[HEADER] = correlation_id
        return response
