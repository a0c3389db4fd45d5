"""
Security Utilities

JWT decoding for bearer credentials issued by the platform's login service.
Token issuance lives outside this service.
"""

import logging
from typing import Any

from jose import JWTError, jwt

from student_registration.core.config import Settings

logger = logging.getLogger(__name__)


def decode_token(token: str, settings: Settings) -> dict[str, Any] | None:
    """
    Decode and verify a JWT.

    Verifies the signature, the algorithm and the expiry claim.

    Args:
        token: Encoded JWT from the Authorization header
        settings: Settings holding the signing secret and algorithm

    Returns:
        The token claims, or None if the token is invalid or expired
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"JWT decode failed: {e}")
        return None
