# tarotapp/core/dependencies.py
import logging

from fastapi import Depends, HTTPException, Request, status
from jose import JWTError

from tarotapp.core import startup
from tarotapp.models.auth_models import TokenData
from tarotapp.services.auth_services import decode_access_token
from tarotapp.services.session_services import ReadingSession, SessionRegistry

logger = logging.getLogger(__name__)


def get_session_registry() -> SessionRegistry:
    if startup.session_registry is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not initialized")
    return startup.session_registry


def get_token_data(request: Request) -> TokenData:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )
    access_token = request.cookies.get("access_token")
    if not access_token:
        raise credentials_exception
    try:
        return decode_access_token(access_token)
    except JWTError as e:
        logger.info(f"Access token error: {e}")
        raise credentials_exception


async def get_current_session(
    token: TokenData = Depends(get_token_data),
    registry: SessionRegistry = Depends(get_session_registry),
) -> ReadingSession:
    return await registry.get_or_restore(token.device_id, token.username)
