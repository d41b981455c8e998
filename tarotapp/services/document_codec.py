# tarotapp/services/document_codec.py
"""
Conversion between domain models and the remote user-document shape.

The remote document keeps camelCase keys and store-native timestamps:

    {
      username, password, name, birthDate, favoriteCategory,
      relationshipStatus, workStatus,
      tarotHistory:    [{id, date, reading, category}, ...],
      questionHistory: [{id, question, reading, date}, ...]
    }

Top-level scalars are parsed all-or-nothing through FIELD_POLICIES. History
arrays are parsed element by element and bad elements are skipped.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar
from uuid import UUID

from tarotapp.models.user_models import (
    QuestionRecord,
    ReadingCategory,
    TarotReading,
    UserProfile,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BIRTH_DATE_SENTINEL = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class FieldError:
    field: str
    reason: str


@dataclass
class ParseResult(Generic[T]):
    value: Optional[T] = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors


@dataclass
class DecodedTimestamp:
    value: Optional[datetime] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None


def decode_timestamp(raw: Any) -> DecodedTimestamp:
    """
    Decodes a stored date into a UTC instant.

    Accepts a native datetime, epoch seconds as int/float, or a numeric
    string holding epoch seconds. Anything else is unparseable.
    """
    if raw is None:
        return DecodedTimestamp(reason="missing")
    if isinstance(raw, datetime):
        if raw.tzinfo is None:
            return DecodedTimestamp(value=raw.replace(tzinfo=timezone.utc))
        return DecodedTimestamp(value=raw.astimezone(timezone.utc))
    if isinstance(raw, bool):
        return DecodedTimestamp(reason=f"unsupported type {type(raw).__name__}")

    if isinstance(raw, str):
        try:
            seconds = float(raw.strip())
        except ValueError:
            return DecodedTimestamp(reason=f"not a numeric string: {raw!r}")
    elif isinstance(raw, (int, float)):
        seconds = float(raw)
    else:
        return DecodedTimestamp(reason=f"unsupported type {type(raw).__name__}")

    if not math.isfinite(seconds):
        return DecodedTimestamp(reason=f"not a finite number: {raw!r}")
    try:
        return DecodedTimestamp(value=datetime.fromtimestamp(seconds, tz=timezone.utc))
    except (OverflowError, OSError, ValueError):
        return DecodedTimestamp(reason=f"out of range: {raw!r}")


def encode_timestamp(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FieldPolicy(str, Enum):
    REJECT = "reject"
    DEFAULT = "default"


# document key -> (model attribute, policy when missing, default)
FIELD_POLICIES: Dict[str, Tuple[str, FieldPolicy, Any]] = {
    "password": ("password", FieldPolicy.DEFAULT, ""),
    "name": ("name", FieldPolicy.REJECT, None),
    "birthDate": ("birth_date", FieldPolicy.DEFAULT, BIRTH_DATE_SENTINEL),
    "favoriteCategory": ("favorite_category", FieldPolicy.REJECT, None),
    "relationshipStatus": ("relationship_status", FieldPolicy.REJECT, None),
    "workStatus": ("work_status", FieldPolicy.REJECT, None),
}


def _require_str(data: Dict[str, Any], key: str, errors: List[FieldError]) -> Optional[str]:
    value = data.get(key)
    if not isinstance(value, str):
        errors.append(FieldError(key, "missing" if value is None else f"expected string, got {type(value).__name__}"))
        return None
    return value


def _require_uuid(data: Dict[str, Any], key: str, errors: List[FieldError]) -> Optional[UUID]:
    raw = _require_str(data, key, errors)
    if raw is None:
        return None
    try:
        return UUID(raw)
    except ValueError:
        errors.append(FieldError(key, f"not a uuid: {raw!r}"))
        return None


def _require_date(data: Dict[str, Any], key: str, errors: List[FieldError]) -> Optional[datetime]:
    decoded = decode_timestamp(data.get(key))
    if not decoded.ok:
        errors.append(FieldError(key, decoded.reason))
    return decoded.value


def parse_tarot_reading(data: Any) -> ParseResult[TarotReading]:
    if not isinstance(data, dict):
        return ParseResult(errors=[FieldError("tarotHistory[]", "expected object")])
    errors: List[FieldError] = []
    reading_id = _require_uuid(data, "id", errors)
    reading = _require_str(data, "reading", errors)
    raw_category = _require_str(data, "category", errors)
    date = _require_date(data, "date", errors)

    category = None
    if raw_category is not None:
        try:
            category = ReadingCategory(raw_category)
        except ValueError:
            errors.append(FieldError("category", f"unknown category {raw_category!r}"))

    if errors:
        return ParseResult(errors=errors)
    return ParseResult(value=TarotReading(id=reading_id, date=date, reading=reading, category=category))


def parse_question_record(data: Any) -> ParseResult[QuestionRecord]:
    if not isinstance(data, dict):
        return ParseResult(errors=[FieldError("questionHistory[]", "expected object")])
    errors: List[FieldError] = []
    record_id = _require_uuid(data, "id", errors)
    question = _require_str(data, "question", errors)
    reading = _require_str(data, "reading", errors)
    date = _require_date(data, "date", errors)

    if errors:
        return ParseResult(errors=errors)
    return ParseResult(value=QuestionRecord(id=record_id, question=question, reading=reading, date=date))


def _parse_history(raw: Any, key: str, parse_element) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning(f"{key} is not an array ({type(raw).__name__}); treating as empty.")
        return []

    parsed = []
    for element in raw:
        result = parse_element(element)
        if result.ok:
            parsed.append(result.value)
        else:
            logger.warning(f"Skipping malformed {key} entry: {[(e.field, e.reason) for e in result.errors]}")
    return parsed


def parse_tarot_history(raw: Any) -> List[TarotReading]:
    return _parse_history(raw, "tarotHistory", parse_tarot_reading)


def parse_question_history(raw: Any) -> List[QuestionRecord]:
    return _parse_history(raw, "questionHistory", parse_question_record)


def parse_profile_document(username: str, data: Dict[str, Any]) -> ParseResult[UserProfile]:
    """
    Builds a UserProfile from a remote field map.

    Scalars follow FIELD_POLICIES: a REJECT field that is missing or of the
    wrong type fails the whole parse. A DEFAULT field falls back only when
    absent; a present but malformed value still fails.
    """
    if not isinstance(data, dict):
        return ParseResult(errors=[FieldError("<document>", "expected object")])

    errors: List[FieldError] = []
    values: Dict[str, Any] = {"username": username}

    for key, (attribute, policy, default) in FIELD_POLICIES.items():
        raw = data.get(key)
        if raw is None:
            if policy is FieldPolicy.DEFAULT:
                logger.info(f"Field {key} missing for {username}; using default.")
                values[attribute] = default
            else:
                errors.append(FieldError(key, "missing"))
            continue

        if key == "birthDate":
            decoded = decode_timestamp(raw)
            if decoded.ok:
                values[attribute] = decoded.value
            else:
                errors.append(FieldError(key, decoded.reason))
        elif isinstance(raw, str):
            values[attribute] = raw
        else:
            errors.append(FieldError(key, f"expected string, got {type(raw).__name__}"))

    if errors:
        return ParseResult(errors=errors)

    values["tarot_history"] = parse_tarot_history(data.get("tarotHistory"))
    values["question_history"] = parse_question_history(data.get("questionHistory"))
    return ParseResult(value=UserProfile(**values))


def tarot_history_to_document(history: List[TarotReading]) -> List[Dict[str, Any]]:
    return [
        {
            "id": str(entry.id),
            "date": encode_timestamp(entry.date),
            "reading": entry.reading,
            "category": entry.category.value,
        }
        for entry in history
    ]


def question_history_to_document(history: List[QuestionRecord]) -> List[Dict[str, Any]]:
    return [
        {
            "id": str(entry.id),
            "question": entry.question,
            "reading": entry.reading,
            "date": encode_timestamp(entry.date),
        }
        for entry in history
    ]


def profile_fields_to_document(profile: UserProfile) -> Dict[str, Any]:
    """The editable profile fields, without identity, credentials or histories."""
    return {
        "name": profile.name,
        "birthDate": encode_timestamp(profile.birth_date),
        "favoriteCategory": profile.favorite_category,
        "relationshipStatus": profile.relationship_status,
        "workStatus": profile.work_status,
    }


def profile_to_document(profile: UserProfile) -> Dict[str, Any]:
    document = {
        "username": profile.username,
        "password": profile.password,
        **profile_fields_to_document(profile),
        "tarotHistory": tarot_history_to_document(profile.tarot_history),
        "questionHistory": question_history_to_document(profile.question_history),
    }
    return document
