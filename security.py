import hashlib
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import bcrypt
import jwt
from fastapi import HTTPException, status

JWT_SECRET = os.getenv("JWT_SECRET", "change-this-secret-in-production")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_MINUTES = int(os.getenv("ACCESS_TOKEN_MINUTES", "30"))
REFRESH_TOKEN_DAYS = int(os.getenv("REFRESH_TOKEN_DAYS", "7"))

# Token "role" claim values, one per identity table.
ROLE_CITIZEN = "user"
ROLE_VOLUNTEER = "volunteer"
ROLE_ADMIN = "admin"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def _build_token(payload: Dict[str, Any], expires_delta: timedelta) -> str:
    expire_at = datetime.now(timezone.utc) + expires_delta
    data = {**payload, "exp": expire_at}
    return jwt.encode(data, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(subject_id: int, role: str) -> str:
    return _build_token(
        {
            "sub": str(subject_id),
            "role": role,
            "type": "access",
        },
        timedelta(minutes=ACCESS_TOKEN_MINUTES),
    )


def create_refresh_token(subject_id: int, role: str) -> str:
    return _build_token(
        {
            "sub": str(subject_id),
            "role": role,
            "type": "refresh",
        },
        timedelta(days=REFRESH_TOKEN_DAYS),
    )


def decode_token(token: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
        ) from exc
    except jwt.InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    return payload


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_reset_token(expires_delta: timedelta) -> Tuple[str, str, datetime]:
    """Return (raw token for the email link, sha256 hash to store, expiry)."""
    raw_token = secrets.token_hex(20)
    return (
        raw_token,
        hash_reset_token(raw_token),
        datetime.now(timezone.utc) + expires_delta,
    )


def is_reset_token_live(expires_at: Optional[datetime]) -> bool:
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at > datetime.now(timezone.utc)
