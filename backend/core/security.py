import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TypedDict

from fastapi.concurrency import run_in_threadpool
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from core.config import Settings, settings
from core.exceptions import InvalidToken, TokenExpired

logger = logging.getLogger(__name__)

REFRESH_TOKEN_TYPE = "refresh"

# OAuth2 scheme (used by OpenAPI 'Authorize' button)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


class AccessTokenPayload(TypedDict):
    userId: str
    email: str


class RefreshTokenPayload(TypedDict):
    userId: str
    type: str


class SessionManager:
    """Password hashing plus access/refresh token issuance and verification.

    Access and refresh tokens are signed with different secrets, so an
    access token never verifies as a refresh token. Refresh tokens are only
    ever persisted as their SHA-256 digest.

    Holds no mutable state; one instance is shared by all requests.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 15,
        refresh_token_expire_days: int = 7,
        bcrypt_rounds: int = 12,
    ):
        if access_secret == refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_token_ttl = timedelta(minutes=access_token_expire_minutes)
        self.refresh_token_ttl = timedelta(days=refresh_token_expire_days)
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds)

    @classmethod
    def from_settings(cls, conf: Settings) -> "SessionManager":
        return cls(
            access_secret=conf.JWT_SECRET,
            refresh_secret=conf.JWT_REFRESH_SECRET,
            algorithm=conf.ALGORITHM,
            access_token_expire_minutes=conf.ACCESS_TOKEN_EXPIRE_MINUTES,
            refresh_token_expire_days=conf.REFRESH_TOKEN_EXPIRE_DAYS,
            bcrypt_rounds=conf.BCRYPT_ROUNDS,
        )

    # Passwords

    async def hash_password(self, password: str) -> str:
        """Generate a salted bcrypt hash off the event loop."""
        return await run_in_threadpool(self.pwd_context.hash, password)

    async def compare_password(self, password: str, hashed_password: str) -> bool:
        """Verify a password against its hash. Mismatch is False, never an error."""
        if not hashed_password:
            return False
        try:
            return await run_in_threadpool(self.pwd_context.verify, password, hashed_password)
        except (ValueError, TypeError) as e:
            logger.warning(f"Password hash could not be verified: {e}")
            return False

    # Tokens

    def _encode(self, claims: dict, secret: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = dict(claims)
        to_encode.update({"iat": now, "exp": now + ttl})
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str) -> dict:
        if not token or not isinstance(token, str):
            raise InvalidToken()
        try:
            return jwt.decode(token, secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpired() from e
        except JWTError as e:
            logger.debug(f"JWT decode failed: {e}")
            raise InvalidToken() from e

    def sign_access_token(self, payload: AccessTokenPayload) -> str:
        return self._encode(
            {"userId": payload["userId"], "email": payload["email"]},
            self._access_secret,
            self.access_token_ttl,
        )

    def verify_access_token(self, token: str) -> AccessTokenPayload:
        decoded = self._decode(token, self._access_secret)
        user_id = decoded.get("userId")
        email = decoded.get("email")
        if not user_id or email is None:
            raise InvalidToken()
        return {"userId": user_id, "email": email}

    def sign_refresh_token(self, user_id: str) -> str:
        return self._encode(
            # jti keeps two rotations within the same second distinct
            {"userId": user_id, "type": REFRESH_TOKEN_TYPE, "jti": secrets.token_hex(16)},
            self._refresh_secret,
            self.refresh_token_ttl,
        )

    def verify_refresh_token(self, token: str) -> RefreshTokenPayload:
        decoded = self._decode(token, self._refresh_secret)
        if decoded.get("type") != REFRESH_TOKEN_TYPE:
            raise InvalidToken("Invalid token type")
        user_id = decoded.get("userId")
        if not user_id:
            raise InvalidToken()
        return {"userId": user_id, "type": REFRESH_TOKEN_TYPE}

    @staticmethod
    def hash_refresh_token(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    def refresh_token_expires_at(self) -> datetime:
        return datetime.now(timezone.utc) + self.refresh_token_ttl


session_manager = SessionManager.from_settings(settings)
