# tarotapp/api/routes/tarot_routes.py
from fastapi import APIRouter, Depends, HTTPException, status

from tarotapp.core.dependencies import get_current_session
from tarotapp.models.tarot_models import (
    CategoryRequest,
    QuestionRequest,
    SelectCardRequest,
    SelectionResponse,
    SessionSnapshot,
    SpreadKind,
)
from tarotapp.models.user_models import QuestionRecord, TarotReading
from tarotapp.services.session_services import InputValidationError, ReadingSession
from tarotapp.services.sync_services import SyncError

router = APIRouter()


@router.put("/category", response_model=SessionSnapshot)
async def set_category(request: CategoryRequest, session: ReadingSession = Depends(get_current_session)):
    session.set_category(request.category)
    return session.state(SpreadKind.FULL).snapshot()


@router.post("/question/ask", response_model=SessionSnapshot)
async def ask_question(request: QuestionRequest, session: ReadingSession = Depends(get_current_session)):
    """
    Answer the user's question from the three selected cards. The answer (or
    an error / "select cards first" message) is in `reading_text`.
    """
    try:
        await session.ask_question(request.question)
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return session.state(SpreadKind.QUESTION).snapshot()


@router.post("/full/save", response_model=TarotReading)
async def save_reading(session: ReadingSession = Depends(get_current_session)):
    try:
        return await session.save_reading()
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.post("/question/save", response_model=QuestionRecord)
async def save_question(session: ReadingSession = Depends(get_current_session)):
    try:
        return await session.save_question()
    except InputValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except SyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.get("/{spread}", response_model=SessionSnapshot)
async def get_spread(spread: SpreadKind, session: ReadingSession = Depends(get_current_session)):
    return session.state(spread).snapshot()


@router.post("/{spread}/select", response_model=SelectionResponse)
async def select_card(
    spread: SpreadKind, request: SelectCardRequest, session: ReadingSession = Depends(get_current_session)
):
    """
    Select one card. Reaching the spread's card count starts generation for
    the full and daily spreads; the response then carries the reading.
    """
    outcome = await session.select_card(spread, request.card_id)
    return SelectionResponse(outcome=outcome, session=session.state(spread).snapshot())


@router.post("/{spread}/reset", response_model=SessionSnapshot)
async def reset_spread(spread: SpreadKind, session: ReadingSession = Depends(get_current_session)):
    session.reset(spread)
    return session.state(spread).snapshot()
