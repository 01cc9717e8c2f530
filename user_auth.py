"""
User accounts and token authentication.

Passwords are hashed with passlib; access tokens are HS256 JWTs carrying the
user id and username. Two FastAPI dependencies expose the caller: one that
requires a valid token and one that falls back to anonymous.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from fastapi import Header, Request
from passlib.context import CryptContext

from api_errors import AuthenticationError, ValidationError
from thought_models import User, new_id, utc_now
from thought_store import UserStore

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 6

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unrecognised hash format
        return False


class TokenManager:
    """Issues and verifies signed access tokens"""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_days: int = 7):
        self.secret = secret
        self.algorithm = algorithm
        self.expires_days = expires_days

    def create_access_token(self, user: User) -> str:
        payload = {
            "userId": user.id,
            "username": user.username,
            "exp": utc_now() + timedelta(days=self.expires_days),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token has expired, please login again") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Invalid or expired token") from e

        if not isinstance(payload.get("userId"), str):
            raise AuthenticationError("Invalid token payload")
        return payload


class UserService:
    """Registration, login and token resolution"""

    def __init__(self, store: UserStore, tokens: TokenManager):
        self.store = store
        self.tokens = tokens

    def _session(self, user: User) -> Dict[str, Any]:
        return {"user": user.public_dict(), "token": self.tokens.create_access_token(user)}

    def register(self, username: Any, password: Any) -> Dict[str, Any]:
        if not isinstance(username, str) or not isinstance(password, str) or not username.strip() or not password:
            raise ValidationError("Username and password are required")

        username = username.strip()
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
        if len(username) < USERNAME_MIN_LENGTH:
            raise ValidationError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long")
        if len(username) > USERNAME_MAX_LENGTH:
            raise ValidationError(f"Username cannot exceed {USERNAME_MAX_LENGTH} characters")
        if self.store.find_by_username(username):
            raise ValidationError("Username already exists")

        user = User(id=new_id(), username=username, password_hash=hash_password(password))
        self.store.insert(user)
        logger.info(f"👤 Registered user {username}")
        return self._session(user)

    def login(self, username: Any, password: Any) -> Dict[str, Any]:
        if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
            raise ValidationError("Username and password are required")

        user = self.store.find_by_username(username.strip())
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        return self._session(user)

    def user_from_token(self, token: str) -> User:
        payload = self.tokens.decode_access_token(token)
        user = self.store.find_by_id(payload["userId"])
        if user is None:
            raise AuthenticationError("User no longer exists")
        return user


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def get_current_user(request: Request, authorization: Optional[str] = Header(default=None)) -> User:
    """Dependency: the authenticated caller, or 401"""
    token = _bearer_token(authorization)
    if token is None:
        raise AuthenticationError("Please login to access this resource")
    return request.app.state.user_service.user_from_token(token)


def get_optional_user(request: Request, authorization: Optional[str] = Header(default=None)) -> Optional[User]:
    """Dependency: the authenticated caller, or None for anonymous access"""
    token = _bearer_token(authorization)
    if token is None:
        return None
    try:
        return request.app.state.user_service.user_from_token(token)
    except AuthenticationError as e:
        logger.warning(f"⚠️ Ignoring invalid token on optional-auth route: {e.message}")
        return None
