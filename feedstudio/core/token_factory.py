"""Create and decode HS256 JWTs for editor sessions.

Pure functions, no state. Used by the auth dependency and by scripts that
mint tokens for the editor front end.
"""

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

ISSUER = "neural-feed-studio"


@dataclass(frozen=True)
class TokenPayload:
    """Decoded JWT claims."""
    sub: str
    role: str
    exp: datetime


def _b64encode(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    return base64.urlsafe_b64decode(data + b"=" * (-len(data) % 4))


def _sign(signing_input: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()


def create_token(subject: str, role: str, secret: str, expires_hours: int = 24) -> str:
    """Create a signed token for *subject* valid for *expires_hours*."""
    now = int(time.time())
    header = {"alg": "HS256", "typ": "JWT"}
    claims = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + expires_hours * 3600,
        "iss": ISSUER,
    }
    signing_input = b".".join(
        _b64encode(json.dumps(part).encode()) for part in (header, claims)
    )
    return (signing_input + b"." + _b64encode(_sign(signing_input, secret))).decode()


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> Optional[TokenPayload]:
    """Validate a token and return its claims.

    Returns ``None`` for anything invalid (bad signature, expired,
    malformed, unsupported algorithm); callers decide what absence means.
    """
    if algorithm != "HS256":
        return None
    try:
        header, claims, signature = token.encode().split(b".")
        if not hmac.compare_digest(_sign(header + b"." + claims, secret), _b64decode(signature)):
            return None

        payload = json.loads(_b64decode(claims))
        exp = payload.get("exp", 0)
        if time.time() > exp:
            return None

        return TokenPayload(
            sub=payload.get("sub", ""),
            role=payload.get("role", ""),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc),
        )
    except (json.JSONDecodeError, ValueError, TypeError):
        return None
