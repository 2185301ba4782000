import hmac
import hashlib
import time
from typing import Optional

import bcrypt

from core.config import settings
from core.exceptions import PasswordTooLongError
from core.logger import logger

# bcrypt input limit
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    encoded = password.encode()
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise PasswordTooLongError()
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode()
    if len(encoded) > MAX_PASSWORD_BYTES:
        # Never hashed, so a truncated match would be a false positive
        return False
    try:
        return bcrypt.checkpw(encoded, password_hash.encode())
    except ValueError:
        # Malformed hash in storage
        return False


def _sign(data: str) -> str:
    return hmac.new(settings.SECRET_KEY.encode(), data.encode(), hashlib.sha256).hexdigest()


def create_token(user_id: int, issued_at: Optional[int] = None) -> str:
    """
    Issue a signed token for the user.
    Format: {user_id}:{timestamp}:{signature}
    """
    timestamp = int(issued_at if issued_at is not None else time.time())
    data = f"{user_id}:{timestamp}"
    return f"{data}:{_sign(data)}"


def verify_token(token: str) -> Optional[int]:
    """Verify a token issued by create_token and return the user ID."""
    if not token:
        return None

    parts = token.split(':')
    if len(parts) != 3:
        return None

    user_id_str, timestamp_str, signature = parts
    if not user_id_str.isdigit() or not timestamp_str.isdigit():
        return None

    # Check expiration
    if int(time.time()) - int(timestamp_str) > settings.TOKEN_TTL_SECONDS:
        logger.warning("Token expired", user_id=user_id_str)
        return None

    expected_signature = _sign(f"{user_id_str}:{timestamp_str}")
    if hmac.compare_digest(expected_signature, signature):
        return int(user_id_str)

    logger.warning("Token signature mismatch", user_id=user_id_str)
    return None
