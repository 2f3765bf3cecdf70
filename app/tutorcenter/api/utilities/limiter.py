# app/tutorcenter/api/utilities/limiter.py

from typing import Optional

from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param
import jwt

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings


def _token_subject(request: Request) -> Optional[str]:
    """User id carried by the request's bearer token, or None."""
    scheme, token = get_authorization_scheme_param(request.headers.get("authorization"))
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        # An expired token still identifies who is calling.
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM], options={"verify_exp": False})
    except jwt.PyJWTError:
        return None
    return claims.get("sub") or None


def rate_limit_key(request: Request) -> str:
    """Signed-in callers share one bucket per user; anonymous ones one per IP."""
    return _token_subject(request) or get_remote_address(request)


limiter = Limiter(
    key_func=rate_limit_key,
    storage_uri=settings.RATE_LIMITER_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)
