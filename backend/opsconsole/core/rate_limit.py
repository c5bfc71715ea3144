"""Shared rate limiter for the console's write endpoints.

Requests carrying a valid bearer token are limited per user, others per IP.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from opsconsole.core.config import settings
from opsconsole.core.security import decode_access_token


def user_or_ip(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        payload = decode_access_token(auth.split(" ", 1)[1])
        if payload and payload.get("sub"):
            return f"user:{payload['sub']}"
    return get_remote_address(request)


limiter = Limiter(key_func=user_or_ip, enabled=settings.rate_limit_enabled)
