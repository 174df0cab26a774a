from datetime import datetime, timedelta, timezone

import jwt

from clinic_api.core import config

def create_access_token(subject: str, role: str = "authenticated", expires_minutes: int = 60) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": role,
        "aud": config.JWT_AUDIENCE,
        "exp": now + timedelta(minutes=expires_minutes),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        audience=config.JWT_AUDIENCE,
    )


def get_role(claims: dict) -> str | None:
    app_metadata = claims.get("app_metadata") or {}
    return app_metadata.get("role") or claims.get("role")
