# tarotapp/api/routes/auth_routes.py
import asyncio
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from jose import JWTError

from tarotapp.core.config import settings
from tarotapp.core.dependencies import get_session_registry
from tarotapp.models.auth_models import (
    AuthenticationError,
    AuthResponse,
    CredentialsValidationError,
    LoginRequest,
    UserCreate,
    UsernameTakenError,
)
from tarotapp.services.auth_services import create_access_token, decode_access_token
from tarotapp.services.database.document_database_services import RemoteStoreError
from tarotapp.services.session_services import SessionRegistry
from tarotapp.services.sync_services import SyncError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


def set_session_cookie(response: Response, username: str, device_id: str) -> None:
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": username, "device": device_id}, expires_delta=access_token_expires
    )
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=True,
        samesite="lax",
        expires=int(access_token_expires.total_seconds()),
        path="/",
    )


@router.post("/register", response_model=AuthResponse)
async def register(
    user_data: UserCreate, response: Response, registry: SessionRegistry = Depends(get_session_registry)
):
    """Register a new user with a placeholder profile and sign them in."""
    try:
        device_id, session = await registry.register(user_data.username, user_data.password)
    except CredentialsValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except UsernameTakenError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already taken")
    except SyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    except (RemoteStoreError, asyncio.TimeoutError) as e:
        logger.error(f"Registration lookup failed for {user_data.username}: {e!r}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="The user could not be saved.")

    set_session_cookie(response, user_data.username, device_id)
    return AuthResponse(success=True, message="User registered successfully", needs_profile=session.profile.needs_profile)


@router.post("/login", response_model=AuthResponse)
async def login(
    login_data: LoginRequest, response: Response, registry: SessionRegistry = Depends(get_session_registry)
):
    """Login a user and set the access token as an HTTP-only cookie."""
    try:
        device_id, session = await registry.login(login_data.username, login_data.password)
    except CredentialsValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AuthenticationError as e:
        logger.info(f"Login failed for {login_data.username}: {type(e).__name__}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=AuthenticationError.user_message)
    except (RemoteStoreError, asyncio.TimeoutError, ValueError) as e:
        logger.error(f"Login lookup failed for {login_data.username}: {e!r}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not reach the user store.")

    set_session_cookie(response, login_data.username, device_id)
    return AuthResponse(success=True, message="Logged in successfully", needs_profile=session.profile.needs_profile)


@router.post("/logout")
async def logout(request: Request, response: Response, registry: SessionRegistry = Depends(get_session_registry)):
    """Logout a user: drop the session, clear the local cache and delete the cookie."""
    access_token = request.cookies.get("access_token")
    if access_token:
        try:
            token = decode_access_token(access_token)
            await registry.logout(token.device_id)
        except JWTError as e:
            # An unreadable token still gets its cookie removed.
            logger.info(f"Logout with invalid token: {e}")
    response.delete_cookie("access_token", path="/")
    return {"message": "Successfully logged out", "success": True}
