import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from fastapi import Request, WebSocket
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_COOKIE_NAME = "token"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a bearer credential."""

    user_id: int
    email: str
    name: str


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a credential for ``user`` (anything with id, email and name)."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode = {
        "userId": str(user.id),
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenClaims]:
    """Return the claims of a valid token, None for any kind of failure."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        return TokenClaims(
            user_id=int(payload["userId"]),
            email=payload["email"],
            name=payload["name"],
        )
    except (JWTError, KeyError, TypeError, ValueError) as e:
        logger.debug("Rejected bearer token: %s", e)
        return None


def extract_token(conn: Union[Request, WebSocket], allow_query: bool = False) -> Optional[str]:
    auth_header = conn.headers.get("authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return token

    token = conn.cookies.get(TOKEN_COOKIE_NAME)
    if token:
        return token

    # Browsers cannot set headers on a WebSocket handshake.
    if allow_query:
        token = conn.query_params.get("token")
        if token:
            return token

    return None


def authenticate(conn: Union[Request, WebSocket], allow_query: bool = False) -> Optional[TokenClaims]:
    token = extract_token(conn, allow_query=allow_query)
    if token is None:
        return None
    return decode_access_token(token)
