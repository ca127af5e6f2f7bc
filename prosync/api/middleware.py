"""
Middleware and request helpers for the API.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from prosync.config import settings

MAX_REQUEST_BYTES = 10_000_000


def get_client_ip(request: Request) -> str:
    """
    Get the real client IP address, preventing spoofing via X-Forwarded-For.
    """
    client_host = (request.client.host if request.client else "") or ""

    if not settings.trust_proxy_headers:
        return client_host

    trusted = {ip.strip() for ip in (settings.trusted_proxy_ips or set()) if ip and ip.strip()}
    if not ("*" in trusted or client_host in trusted):
        # Forwarded headers from untrusted peers are ignored.
        return client_host

    xff = (request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        return xff.split(",")[0].strip() or client_host
    xri = (request.headers.get("x-real-ip") or "").strip()
    return xri or client_host


def setup_compression(app: FastAPI) -> None:
    app.add_middleware(GZipMiddleware, minimum_size=800)


def setup_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-User-ID", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=settings.cors_max_age,
    )


def setup_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # JSON API: nothing here should ever be framed or run scripts.
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


def setup_request_size_limit(app: FastAPI) -> None:
    @app.middleware("http")
    async def limit_request_size(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_BYTES:
            return JSONResponse(
                status_code=413,
                content={"error": "payload_too_large", "message": "Payload too large"},
                headers={"Cache-Control": "no-store"},
            )
        return await call_next(request)
