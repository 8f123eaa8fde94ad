from __future__ import annotations

import hashlib
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from fieldsmart.config import Settings

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class TokenPayload:
    sub: uuid.UUID
    tenant_id: uuid.UUID | None
    role: str
    exp: datetime
    token_type: str = ACCESS


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def hash_token(token: str) -> str:
    """Refresh tokens are stored as SHA-256 digests only."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _encode(claims: dict, lifetime: timedelta, settings: Settings) -> str:
    claims = {**claims, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def create_access_token(
    user_id: uuid.UUID, tenant_id: uuid.UUID, role: str, settings: Settings
) -> str:
    return _encode(
        {"sub": str(user_id), "tid": str(tenant_id), "role": role, "type": ACCESS},
        timedelta(minutes=settings.access_token_expire_minutes),
        settings,
    )


def create_refresh_token(user_id: uuid.UUID, settings: Settings) -> str:
    return _encode(
        # jti keeps two tokens minted in the same second distinct
        {"sub": str(user_id), "type": REFRESH, "jti": uuid.uuid4().hex},
        timedelta(days=settings.refresh_token_expire_days),
        settings,
    )


def decode_token(token: str, settings: Settings) -> TokenPayload | None:
    """Verify signature and expiry; ``None`` for anything unusable."""
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        return TokenPayload(
            sub=uuid.UUID(claims["sub"]),
            tenant_id=uuid.UUID(claims["tid"]) if claims.get("tid") else None,
            role=claims.get("role", "technician"),
            exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
            token_type=claims.get("type", ACCESS),
        )
    except (JWTError, ValueError, KeyError):
        return None


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "tenant"
