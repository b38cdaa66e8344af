import secrets
from datetime import UTC, datetime, timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from app.core.config import get_settings
from app.core.errors import CryptoUnavailable

ph = PasswordHasher(time_cost=3, memory_cost=64 * 1024, parallelism=2)
settings = get_settings()
JWT_SECRET = settings.jwt_secret
JWT_ALGO = settings.jwt_algo
ACCESS_MIN = settings.access_min

INVITE_TOKEN_BYTES = 32


def generate_raw_token(nbytes: int = INVITE_TOKEN_BYTES) -> str:
    try:
        return secrets.token_hex(nbytes)
    except NotImplementedError as exc:
        raise CryptoUnavailable("Secure random source is unavailable") from exc


def hash_token(raw_token: str) -> str:
    return ph.hash(raw_token)


def verify_token(raw_token: str, token_hash: str | None) -> bool:
    if not token_hash:
        return False
    try:
        return ph.verify(token_hash, raw_token)
    except (VerificationError, InvalidHashError):
        return False


def issue_token() -> tuple[str, str]:
    """
    Mint an invitation secret.

    Returns the 64-char hex plaintext, which goes out by email only, and its
    salted hash, which is the only form that is ever stored.
    """
    raw_token = generate_raw_token()
    return raw_token, hash_token(raw_token)


def hash_password(plain: str) -> str:
    return ph.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return ph.verify(hashed, plain)
    except Exception:
        return False


def generate_password(nbytes: int = 9) -> str:
    try:
        return secrets.token_urlsafe(nbytes)
    except NotImplementedError as exc:
        raise CryptoUnavailable("Secure random source is unavailable") from exc


def create_token(sub: str, roles: list[str], sid: int | None, ttl: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "roles": roles,
        "sid": sid,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGO)


def create_access(sub: str, roles: list[str], sid: int | None = None) -> str:
    return create_token(sub, roles, sid, timedelta(minutes=ACCESS_MIN))
