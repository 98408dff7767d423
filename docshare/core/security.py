"""
Security Utilities
JWT token management and password hashing
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from docshare.core.config import Settings
from docshare.core.exceptions import AuthenticationException

ALGORITHM = "HS256"


class SecurityContext:
    """Password hashing and token signing bound to one set of settings"""

    def __init__(self, settings: Settings):
        self._secret_key = settings.SECRET_KEY
        self._access_expire = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
        self._refresh_expire = timedelta(days=settings.JWT_REFRESH_TOKEN_EXPIRE_DAYS)
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=settings.PASSWORD_BCRYPT_ROUNDS,
        )

    @property
    def access_token_expires_in(self) -> int:
        """Access token lifetime in seconds"""
        return int(self._access_expire.total_seconds())

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a hash"""
        return self.pwd_context.verify(plain_password, hashed_password)

    def get_password_hash(self, password: str) -> str:
        """Hash a password"""
        return self.pwd_context.hash(password)

    def _encode(self, data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + expires_delta
        # jti keeps two tokens minted in the same second distinct
        to_encode.update({"exp": expire, "type": token_type, "jti": uuid.uuid4().hex})
        return jwt.encode(to_encode, self._secret_key, algorithm=ALGORITHM)

    def create_access_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Create a JWT access token"""
        return self._encode(data, "access", expires_delta or self._access_expire)

    def create_refresh_token(
        self,
        data: Dict[str, Any],
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Create a JWT refresh token"""
        return self._encode(data, "refresh", expires_delta or self._refresh_expire)

    def decode_token(self, token: str) -> Dict[str, Any]:
        """Decode and verify a JWT token"""
        try:
            return jwt.decode(token, self._secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            raise AuthenticationException(
                message="Invalid token",
                details={"error": str(e)},
            )

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """Verify an access token and return its payload"""
        payload = self.decode_token(token)

        if payload.get("type") != "access":
            raise AuthenticationException(
                message="Invalid token type",
                details={"expected": "access", "got": payload.get("type")},
            )

        return payload

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        """Verify a refresh token and return its payload"""
        payload = self.decode_token(token)

        if payload.get("type") != "refresh":
            raise AuthenticationException(
                message="Invalid token type",
                details={"expected": "refresh", "got": payload.get("type")},
            )

        return payload
