# tarotapp/models/user_models.py
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

PLACEHOLDER_NAME = "New User"
UNSPECIFIED = "Unspecified"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReadingCategory(str, Enum):
    GENERAL = "General"
    LOVE = "Love"
    CAREER = "Career"
    HEALTH = "Health"


class TarotReading(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    date: datetime = Field(default_factory=utc_now)
    reading: str
    category: ReadingCategory


class QuestionRecord(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    question: str
    reading: str
    date: datetime = Field(default_factory=utc_now)


class UserProfile(BaseModel):
    """
    The durable per-user record. `username` is the document key in the remote
    store and never changes after registration.
    """
    username: str
    password: str
    name: str
    birth_date: datetime
    favorite_category: str
    relationship_status: str
    work_status: str
    tarot_history: List[TarotReading] = []
    question_history: List[QuestionRecord] = []

    @property
    def needs_profile(self) -> bool:
        return self.name == PLACEHOLDER_NAME


class ProfileUpdate(BaseModel):
    name: str
    birth_date: datetime
    favorite_category: ReadingCategory = ReadingCategory.GENERAL
    relationship_status: str = UNSPECIFIED
    work_status: str = UNSPECIFIED


class PublicProfile(BaseModel):
    username: str
    name: str
    birth_date: datetime
    favorite_category: str
    relationship_status: str
    work_status: str
    zodiac_sign: Optional[str] = None
    needs_profile: bool = False
