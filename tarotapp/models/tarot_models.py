# tarotapp/models/tarot_models.py
from enum import Enum
from typing import List
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from tarotapp.models.user_models import ReadingCategory


class TarotCard(BaseModel):
    # Regenerated on every catalog load; not stable across reloads.
    id: UUID = Field(default_factory=uuid4)
    name: str
    img: str


class SpreadKind(str, Enum):
    FULL = "full"
    QUESTION = "question"
    DAILY = "daily"


SPREAD_CAPACITY = {
    SpreadKind.FULL: 7,
    SpreadKind.QUESTION: 3,
    SpreadKind.DAILY: 1,
}

AUTO_GENERATE = {
    SpreadKind.FULL: True,
    SpreadKind.QUESTION: False,
    SpreadKind.DAILY: True,
}


class SessionPhase(str, Enum):
    NO_CARDS_SELECTED = "no_cards_selected"
    SELECTING = "selecting"
    READY_TO_GENERATE = "ready_to_generate"
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


class ProfilePhase(str, Enum):
    IDLE = "idle"
    AWAITING_PROFILE = "awaiting_profile"
    READY = "ready"


class SelectionOutcome(str, Enum):
    SELECTED = "selected"
    THRESHOLD_REACHED = "threshold_reached"
    IGNORED = "ignored"
    BLOCKED = "blocked"


class SessionSnapshot(BaseModel):
    spread: SpreadKind
    phase: SessionPhase
    profile_phase: ProfilePhase
    deck: List[TarotCard]
    selected: List[TarotCard]
    reading_text: str
    is_loading: bool
    selected_category: ReadingCategory
    question: str = ""


class SelectCardRequest(BaseModel):
    card_id: UUID


class CategoryRequest(BaseModel):
    category: ReadingCategory


class QuestionRequest(BaseModel):
    question: str


class SelectionResponse(BaseModel):
    outcome: SelectionOutcome
    session: SessionSnapshot
