"""
Response hardening headers.

Redirect responses (/r/) must never be cached by browsers or proxies: a
cached 302 skips both the access policy and click accounting. They also
carry no Referer onward, so destinations don't learn the short link.
"""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

NO_STORE_PREFIXES = ("/r/", "/v1/")

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}

BASE_HEADERS = {
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        path = request.url.path

        if "server" in response.headers:
            del response.headers["server"]

        if path.startswith(NO_STORE_PREFIXES):
            response.headers.update(NO_STORE_HEADERS)

        response.headers["Referrer-Policy"] = (
            "no-referrer" if path.startswith("/r/") else "strict-origin-when-cross-origin"
        )
        response.headers.update(BASE_HEADERS)
        return response
