from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware


class APISecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Harden every JSON response; ticket and payment data is never cached."""

    HEADERS = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "no-referrer",
        "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)

        # Only meaningful once the client has reached us over TLS
        if request.url.scheme == "https" or request.headers.get("x-forwarded-proto") == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


def setup_security_middleware(app: FastAPI, allowed_hosts: list[str] = None):
    app.add_middleware(APISecurityHeadersMiddleware)

    # Reject requests addressed to hosts we do not serve
    if allowed_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)
