"""Security headers for the API and the hub.

Learn: both processes answer with per-caller data (orders, tokens,
broadcast results), so every response is marked no-store and
non-frameable. JSON responses additionally get a deny-all
Content-Security-Policy. HTML is left alone so the GraphiQL page
served in development can still run its scripts.

HSTS is only sent when the request itself arrived over HTTPS, or when
the deployment says it sits behind a TLS-terminating proxy.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
JSON_CSP = "default-src 'none'; frame-ancestors 'none'"
HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, assume_https: bool = False):
        super().__init__(app)
        self.assume_https = assume_https

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers.update(BASE_HEADERS)
        # an endpoint may opt into caching explicitly
        response.headers.setdefault("Cache-Control", "no-store")

        if response.headers.get("content-type", "").startswith("application/json"):
            response.headers.setdefault("Content-Security-Policy", JSON_CSP)
        if self.assume_https or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = HSTS_VALUE
        return response
