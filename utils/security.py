"""Security helpers for response headers and input sanitation."""
import html
from typing import Mapping

from flask import request


def sanitize_input(data: Mapping) -> dict:
    """Return a sanitized copy of incoming data to reduce injection risk."""
    sanitized = {}
    for key, value in data.items():
        sanitized[html.escape(str(key))] = html.escape(str(value))
    return sanitized


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers for a JSON API that may be embedded by the portal front end."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'self'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(self), microphone=(), camera=()")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
    return response
