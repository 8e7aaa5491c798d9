"""Password hashing and JWT issuance."""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from .config import Settings, settings
from .exceptions import AuthenticationError
from .types import TokenClaims


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """Check a plaintext password against a stored hash; malformed hashes never match."""
    if not password_hash:
        return False
    try:
        return check_password_hash(password_hash, password)
    except ValueError:
        return False


def create_token(user_id: int, email: str, role: str, config: Settings | None = None) -> str:
    """Create a JWT token for a user.

    Args:
        user_id: The user identifier, stored as the ``sub`` claim.
        email: User email, copied into the claims.
        role: User role, copied into the claims.
        config: Settings to sign with. Uses the module settings if not provided.

    Returns:
        Encoded JWT token as string.
    """
    config = config or settings
    issued_at = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(hours=config.jwt_expiration_hours),
    }
    token: str = jwt.encode(payload, config.signing_key(), algorithm=config.jwt_algorithm)
    return token


def decode_token(token: str, config: Settings | None = None) -> TokenClaims:
    """Decode and verify a token.

    Raises:
        AuthenticationError: If the token is malformed, tampered with or expired.
    """
    config = config or settings
    try:
        claims: TokenClaims = jwt.decode(  # type: ignore[assignment]
            token, config.signing_key(), algorithms=[config.jwt_algorithm]
        )
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e

    if not claims.get("sub"):
        raise AuthenticationError("Invalid or expired token")
    return claims
