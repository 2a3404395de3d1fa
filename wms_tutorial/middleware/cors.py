"""CORS interceptor: preflight short-circuit, CORS headers on every response, last-resort 500."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from wms_tutorial.core.errors import internal_error_response

logger = logging.getLogger(__name__)

ALLOW_HEADERS = "Content-Type, Authorization"
ALLOW_METHODS = "GET, POST, PUT, DELETE, OPTIONS"


class CORSMiddleware(BaseHTTPMiddleware):
    """
    Outermost interceptor.

    OPTIONS requests are answered with 204 and no body before any route,
    dependency or auth guard runs. Local development origins are echoed back;
    every other origin gets ``*``.
    """

    def __init__(self, app, local_origins: list[str] | None = None, is_development: bool = False):
        super().__init__(app)
        self.local_origins = frozenset(local_origins or ())
        self.is_development = is_development

    def cors_headers(self, origin: str | None) -> dict[str, str]:
        allow_origin = origin if origin and origin in self.local_origins else "*"
        return {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
            "Access-Control-Allow-Methods": ALLOW_METHODS,
        }

    async def dispatch(self, request: Request, call_next):
        headers = self.cors_headers(request.headers.get("origin"))

        if request.method == "OPTIONS":
            return Response(status_code=204, headers=headers)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = internal_error_response(e, self.is_development)

        response.headers.update(headers)
        return response
