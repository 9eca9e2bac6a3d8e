"""
Credentials: staff passwords, JWT bearer tokens and integrator API keys.

Back-office users log in with email/password and receive an access
token plus a refresh token; the two are told apart by the "type" claim
so one cannot stand in for the other. Integrators authenticate with an
ak_/sk_ pair instead; only the secret's SHA-256 digest is kept.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Any, Tuple
import hashlib
import hmac
import secrets
import uuid

from jose import JWTError, jwt
from passlib.context import CryptContext

from courier.config import settings


# argon2 for new hashes; bcrypt hashes from imported staff accounts still verify
pwd_context = CryptContext(
    schemes=["argon2", "bcrypt"],
    default="argon2",
    deprecated=["bcrypt"],
)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

API_KEY_PREFIX = "ak_"
API_SECRET_PREFIX = "sk_"


# ==================== PASSWORDS ====================

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def verify_and_check_needs_rehash(plain_password: str, hashed_password: str) -> Tuple[bool, bool]:
    """
    Returns (is_valid, needs_rehash).

    needs_rehash is True for a valid bcrypt hash, so the caller can
    upgrade it to argon2 on a successful login.
    """
    if not verify_password(plain_password, hashed_password):
        return False, False
    return True, pwd_context.needs_update(hashed_password)


# ==================== JWT ====================

def _encode_token(
    subject: str | uuid.UUID,
    token_type: str,
    lifetime: timedelta,
    claims: Optional[dict[str, Any]] = None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {
        **(claims or {}),
        "sub": str(subject),
        "type": token_type,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(
    subject: str | uuid.UUID,
    expires_delta: Optional[timedelta] = None,
    additional_claims: Optional[dict[str, Any]] = None,
) -> str:
    """Short-lived bearer token for /api/v1; subject is the user id."""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode_token(subject, ACCESS_TOKEN, lifetime, additional_claims)


def create_refresh_token(subject: str | uuid.UUID, expires_delta: Optional[timedelta] = None) -> str:
    lifetime = expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode_token(subject, REFRESH_TOKEN, lifetime)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """Payload of a valid, unexpired token, else None."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def _subject_of(token: str, token_type: str) -> Optional[str]:
    payload = decode_token(token)
    if payload is None or payload.get("type") != token_type:
        return None
    return payload.get("sub")


def verify_access_token(token: str) -> Optional[str]:
    return _subject_of(token, ACCESS_TOKEN)


def verify_refresh_token(token: str) -> Optional[str]:
    return _subject_of(token, REFRESH_TOKEN)


# ==================== API KEY CREDENTIALS ====================

def generate_api_key() -> str:
    """Public key identifier: ak_ followed by 32 hex chars."""
    return f"{API_KEY_PREFIX}{secrets.token_hex(16)}"


def generate_api_secret() -> str:
    """Secret shown once to the integrator: sk_ followed by 64 hex chars."""
    return f"{API_SECRET_PREFIX}{secrets.token_hex(32)}"


def hash_api_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def verify_api_secret(secret: str, secret_hash: str) -> bool:
    return hmac.compare_digest(hash_api_secret(secret), secret_hash)
