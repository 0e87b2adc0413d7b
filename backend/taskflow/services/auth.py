"""Password hashing and JWT token management"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from taskflow.config import Settings
from taskflow.errors import AppError
from taskflow.utils.monitoring import StructuredLogger


class AuthService:
    """Service for password hashing and access token handling"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=settings.BCRYPT_ROUNDS,
        )

    def hash_password(self, password: str) -> str:
        return self.pwd_context.hash(password)

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash

        Args:
            plain_password: Plain text password
            hashed_password: Stored bcrypt hash

        Returns:
            True if password matches, False otherwise (including malformed hashes)
        """
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except (ValueError, TypeError) as e:
            StructuredLogger.log_error(e, context={"function": "verify_password"})
            return False

    def create_access_token(
        self,
        user: Dict[str, Any],
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a signed JWT for a user document

        Args:
            user: User document (needs _id, email and role)
            expires_delta: Custom lifetime, defaults to JWT_EXPIRE_MINUTES

        Returns:
            Encoded JWT
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.settings.JWT_EXPIRE_MINUTES)

        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user["_id"]),
            "email": user["email"],
            "role": user.get("role", "user"),
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
        }
        return jwt.encode(payload, self.settings.JWT_SECRET, algorithm=self.settings.JWT_ALGORITHM)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        """Decode a JWT, raising AppError for expired or malformed tokens"""
        try:
            payload = jwt.decode(
                token,
                self.settings.JWT_SECRET,
                algorithms=[self.settings.JWT_ALGORITHM],
            )
        except ExpiredSignatureError:
            raise AppError.token_expired()
        except JWTError:
            raise AppError.invalid_token()

        if not payload.get("sub"):
            raise AppError.invalid_token()
        return payload
