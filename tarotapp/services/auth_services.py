# tarotapp/services/auth_services.py
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from tarotapp.core.config import settings
from tarotapp.models.auth_models import (
    CredentialsValidationError,
    InvalidPasswordError,
    TokenData,
    UserNotFoundError,
    UsernameTakenError,
)
from tarotapp.models.user_models import (
    PLACEHOLDER_NAME,
    UNSPECIFIED,
    ReadingCategory,
    UserProfile,
    utc_now,
)
from tarotapp.services.database.document_database_services import DocumentStore
from tarotapp.services.document_codec import parse_profile_document

logger = logging.getLogger(__name__)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def validate_credentials(username: str, password: str) -> None:
    if not username or not username.strip() or not password:
        raise CredentialsValidationError("Please enter a username and password.")


async def authenticate_user(
    store: DocumentStore, username: str, password: str, collection: str = "users", timeout: float = 10.0
) -> UserProfile:
    """
    Looks up the user document and checks the password.

    Raises UserNotFoundError / InvalidPasswordError; callers should show both
    as the same generic message. Store errors propagate.
    """
    validate_credentials(username, password)

    fields = await asyncio.wait_for(store.fetch_document(collection, username), timeout=timeout)
    if fields is None:
        raise UserNotFoundError(username)

    stored = fields.get("password")
    if not isinstance(stored, str) or not verify_password(password, stored):
        raise InvalidPasswordError(username)

    result = parse_profile_document(username, fields)
    if not result.ok:
        logger.error(f"Profile for {username} failed to parse at login: {[(e.field, e.reason) for e in result.errors]}")
        raise ValueError(f"Stored profile for {username} is malformed")
    return result.value


async def build_new_user(
    store: DocumentStore, username: str, password: str, collection: str = "users", timeout: float = 10.0
) -> UserProfile:
    """A placeholder profile for a new account, after checking the name is free."""
    validate_credentials(username, password)

    existing = await asyncio.wait_for(store.fetch_document(collection, username), timeout=timeout)
    if existing is not None:
        raise UsernameTakenError("Username already taken")

    return UserProfile(
        username=username,
        password=hash_password(password),
        name=PLACEHOLDER_NAME,
        birth_date=utc_now(),
        favorite_category=ReadingCategory.GENERAL.value,
        relationship_status=UNSPECIFIED,
        work_status=UNSPECIFIED,
    )


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    username = payload.get("sub")
    device_id = payload.get("device")
    if not username or not device_id:
        raise JWTError("Invalid token payload")
    return TokenData(username=username, device_id=device_id)
