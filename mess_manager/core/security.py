import hashlib
import hmac

from jose import JWTError, jwt

from mess_manager.config import settings
from mess_manager.core.exceptions import UnauthorizedException


def decode_jwt(token: str) -> dict:
    """
    Decode and validate JWT token using shared SECRET_KEY.

    Args:
        token: JWT access token from Authorization header

    Returns:
        Decoded token payload with 'sub' (person id), 'exp', etc.

    Raises:
        UnauthorizedException: If token invalid, expired, or malformed
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])

        # Validate expiration (jose checks this automatically)
        exp = payload.get("exp")
        if exp is None:
            raise UnauthorizedException("Token missing expiration")

        subject: str = payload.get("sub")
        if subject is None:
            raise UnauthorizedException("Token missing user identifier")

        return payload

    except JWTError as e:
        raise UnauthorizedException(f"Invalid token: {str(e)}")


def qr_secret() -> str:
    """HMAC key used to sign attendance tokens."""
    return settings.qr_secret


def sign_token_payload(subject: str, purpose: str, issued_at: str, secret: str | None = None) -> str:
    """
    Sign the identifying fields of an attendance token.

    signature = HMAC-SHA256(secret, subject | purpose | issued_at)
    """
    key = (secret if secret is not None else qr_secret()).encode("utf-8")
    message = "|".join((subject, purpose, issued_at)).encode("utf-8")
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def verify_token_signature(
    signature: str, subject: str, purpose: str, issued_at: str, secret: str | None = None
) -> bool:
    """Constant-time comparison of a presented signature against the recomputed one."""
    expected = sign_token_payload(subject, purpose, issued_at, secret)
    return hmac.compare_digest(expected, signature)
