import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinic_api.auth import jwt_handler
from clinic_api.core import config

security = HTTPBearer(auto_error=False)


def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token subject")
    return payload


def require_admin(claims: dict = Depends(get_token_claims)) -> dict:
    if jwt_handler.get_role(claims) != config.ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin access required")
    return claims
