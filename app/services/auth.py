"""
Listing Image Service - Auth Service
JWT access tokens issued by the account service

Production tokens come from the account service; this module only needs to
decode them. create_access_token mints tokens with the shared secret for
local development and the test suite.
"""
from datetime import datetime, timedelta
from typing import Optional
from jose import jwt, JWTError

from app.config import get_settings


class AuthService:
    """Decodes the JWTs that identify uploaders; can mint them for dev and tests."""

    def create_access_token(
        self,
        user_id: str,
        role: Optional[str] = None,
        expires_delta: Optional[timedelta] = None
    ) -> tuple[str, int]:
        """
        Create a JWT access token for local development and tests.

        Args:
            user_id: User ID to encode in token
            role: Optional user role
            expires_delta: Optional custom expiry time

        Returns:
            Tuple of (token string, expires_in seconds)
        """
        settings = get_settings()
        if expires_delta:
            expire = datetime.utcnow() + expires_delta
            expires_in = int(expires_delta.total_seconds())
        else:
            expires_in = settings.jwt_expire_minutes * 60
            expire = datetime.utcnow() + timedelta(minutes=settings.jwt_expire_minutes)

        to_encode = {
            "sub": str(user_id),
            "exp": expire,
            "iat": datetime.utcnow()
        }
        if role:
            to_encode["role"] = role

        encoded_jwt = jwt.encode(
            to_encode,
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm
        )

        return encoded_jwt, expires_in

    def decode_token(self, token: str) -> Optional[dict]:
        """
        Decode and validate a JWT token.

        Returns:
            Decoded payload or None if invalid
        """
        settings = get_settings()
        try:
            return jwt.decode(
                token,
                settings.jwt_secret_key,
                algorithms=[settings.jwt_algorithm]
            )
        except JWTError:
            return None


# Singleton instance
auth_service = AuthService()
