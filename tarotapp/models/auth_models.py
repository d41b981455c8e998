# tarotapp/models/auth_models.py
from typing import Optional

from pydantic import BaseModel


class AuthenticationError(Exception):
    """Login failed. Subclasses say why; users only ever see the generic message."""
    user_message = "Invalid username or password"


class UserNotFoundError(AuthenticationError):
    pass


class InvalidPasswordError(AuthenticationError):
    pass


class CredentialsValidationError(ValueError):
    pass


class UsernameTakenError(ValueError):
    pass


class TokenData(BaseModel):
    username: Optional[str] = None
    device_id: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class UserCreate(BaseModel):
    username: str
    password: str


class AuthResponse(BaseModel):
    success: bool
    message: str
    needs_profile: bool = False
