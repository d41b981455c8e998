# tarotapp/api/routes/history_routes.py
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from tarotapp.core.dependencies import get_current_session
from tarotapp.models.user_models import QuestionRecord, TarotReading
from tarotapp.services.session_services import ReadingSession
from tarotapp.services.sync_services import SyncError

router = APIRouter(tags=["History"])


@router.get("/readings", response_model=List[TarotReading])
async def get_reading_history(session: ReadingSession = Depends(get_current_session)):
    """Fetch a user's tarot reading history, newest first."""
    if session.profile is None:
        return []
    return sorted(session.profile.tarot_history, key=lambda reading: reading.date, reverse=True)


@router.get("/questions", response_model=List[QuestionRecord])
async def get_question_history(session: ReadingSession = Depends(get_current_session)):
    if session.profile is None:
        return []
    return sorted(session.profile.question_history, key=lambda record: record.date, reverse=True)


@router.delete("/readings/{reading_id}")
async def delete_reading(reading_id: UUID, session: ReadingSession = Depends(get_current_session)):
    """Delete a specific tarot reading."""
    try:
        deleted = await session.coordinator.delete_reading(reading_id)
    except SyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reading not found")
    return {"message": "Reading deleted successfully"}


@router.delete("/questions/{question_id}")
async def delete_question(question_id: UUID, session: ReadingSession = Depends(get_current_session)):
    try:
        deleted = await session.coordinator.delete_question(question_id)
    except SyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
    return {"message": "Question deleted successfully"}
