"""JWT access token generation and validation."""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from crestcat.auth.principal import Principal
from crestcat.core.exceptions import AuthenticationError
from crestcat.core.logging import get_logger
from crestcat.core.settings import settings
from crestcat.models.user import UserRole

logger = get_logger(__name__)


def create_access_token(
    user_id: uuid.UUID,
    role: UserRole = UserRole.USER,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed access token.

    Args:
        user_id: Subject of the token
        role: Role claim copied into the principal
        expires_delta: Lifetime override

    Returns:
        str: Encoded JWT
    """
    now = datetime.utcnow()
    lifetime = expires_delta or timedelta(minutes=settings.auth.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "iat": now,
        "exp": now + lifetime,
        "jti": str(uuid.uuid4()),
        "type": "access",
    }
    return jwt.encode(
        payload,
        settings.auth.JWT_SECRET_KEY.get_secret_value(),
        algorithm=settings.auth.JWT_ALGORITHM
    )


def decode_access_token(token: str) -> Principal:
    """
    Verify a token and build the caller's principal.

    Raises:
        AuthenticationError: Expired, tampered or malformed token
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth.JWT_SECRET_KEY.get_secret_value(),
            algorithms=[settings.auth.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        logger.warning("JWT validation failed", extra={"error": str(e)})
        raise AuthenticationError("Invalid token")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    try:
        return Principal(
            user_id=uuid.UUID(payload["sub"]),
            role=UserRole(payload.get("role", UserRole.USER.value))
        )
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token payload")
