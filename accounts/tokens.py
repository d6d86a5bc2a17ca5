from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings


def make_access_token(user) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "id": user.pk,
        "email": user.email,
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Return the token claims. Raises jwt.InvalidTokenError for a bad signature, an expired token
    or missing claims.
    """
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "id"]},
    )
