# tarotapp/api/routes/profile_routes.py
from fastapi import APIRouter, Depends, HTTPException, status

from tarotapp.core.dependencies import get_current_session
from tarotapp.models.user_models import ProfileUpdate, PublicProfile, UserProfile
from tarotapp.services.session_services import ReadingSession
from tarotapp.services.sync_services import SyncError
from tarotapp.services.tarot_services import zodiac_sign_for

router = APIRouter(tags=["Profile"])


def to_public_profile(profile: UserProfile) -> PublicProfile:
    return PublicProfile(
        username=profile.username,
        name=profile.name,
        birth_date=profile.birth_date,
        favorite_category=profile.favorite_category,
        relationship_status=profile.relationship_status,
        work_status=profile.work_status,
        zodiac_sign=zodiac_sign_for(profile.birth_date),
        needs_profile=profile.needs_profile,
    )


def require_profile(session: ReadingSession) -> UserProfile:
    if session.profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not loaded yet")
    return session.profile


@router.get("/", response_model=PublicProfile)
async def get_profile(session: ReadingSession = Depends(get_current_session)):
    return to_public_profile(require_profile(session))


@router.put("/", response_model=PublicProfile)
async def update_profile(changes: ProfileUpdate, session: ReadingSession = Depends(get_current_session)):
    """Edit the profile fields. History arrays are left untouched."""
    require_profile(session)
    if not changes.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please enter your name.")
    try:
        updated = await session.coordinator.update_profile(changes)
    except SyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return to_public_profile(updated)


@router.post("/refresh", response_model=PublicProfile)
async def refresh_profile(session: ReadingSession = Depends(get_current_session)):
    """Re-fetch the profile from the remote store, as on app resume."""
    await session.coordinator.fetch_user_info()
    return to_public_profile(require_profile(session))
