"""
Password hashing and session tokens.

Passwords are hashed with bcrypt through passlib at a fixed cost of 10
rounds. Session tokens are HS256 JWTs carrying ``userId`` and ``email``;
the claims are signed but readable by anyone holding the token.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError as ClaimsError

TOKEN_ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(hours=2)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)


class InvalidTokenError(Exception):
    """Token is malformed, carries a bad signature, or has expired."""


class TokenClaims(BaseModel):
    userId: str
    email: str


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        # unknown or corrupt hash format
        return False


def issue_token(claims: TokenClaims, secret: str, expires_in: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = claims.model_dump()
    payload["iat"] = now
    payload["exp"] = now + (expires_in if expires_in is not None else TOKEN_LIFETIME)
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def verify_token(token: str, secret: str) -> TokenClaims:
    """Decode ``token`` and return its claims.

    Raises ``InvalidTokenError`` for any signature, format or expiry problem,
    and when the payload lacks ``userId`` or ``email``.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[TOKEN_ALGORITHM],
            options={"require": ["exp"]},
        )
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError(str(exc)) from exc

    try:
        return TokenClaims.model_validate(payload)
    except ClaimsError as exc:
        raise InvalidTokenError("Token is missing required claims") from exc
