"""In-memory stand-ins for the store, the cache backend and the completion service."""

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from google.genai import types
from redis.exceptions import ConnectionError as RedisConnectionError

from tarotapp.models.llm_models import CompletionRequest
from tarotapp.models.tarot_models import TarotCard
from tarotapp.models.user_models import UserProfile
from tarotapp.services.auth_services import hash_password
from tarotapp.services.database.document_database_services import RemoteStoreError

PASSWORD = "s3cret-pass"
_PASSWORD_HASH = hash_password(PASSWORD)


class FakeRedis:
    """The subset of redis.asyncio.Redis that LocalCache uses."""

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("redis is down")

    async def get(self, key: str) -> Any:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: Any) -> bool:
        self._check()
        self.data[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed


class InMemoryDocumentStore:
    """
    DocumentStore keeping documents in a dict.

    `fetch_gate`, when set, holds every fetch until the event is set.
    `fail_fetch` / `fail_writes` make the matching calls raise RemoteStoreError.
    """

    def __init__(self) -> None:
        self.documents: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.fetch_calls = 0
        self.set_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.update_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.fetch_gate: Optional[asyncio.Event] = None
        self.fail_fetch = False
        self.fail_writes = False

    async def fetch_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        self.fetch_calls += 1
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fail_fetch:
            raise RemoteStoreError(f"fetch of {collection}/{key} failed")
        document = self.documents.get((collection, key))
        return copy.deepcopy(document) if document is not None else None

    async def set_document(self, collection: str, key: str, fields: Dict[str, Any]) -> None:
        self.set_calls.append((key, copy.deepcopy(fields)))
        if self.fail_writes:
            raise RemoteStoreError(f"write of {collection}/{key} failed")
        self.documents[(collection, key)] = copy.deepcopy(fields)

    async def update_fields(self, collection: str, key: str, fields: Dict[str, Any]) -> None:
        self.update_calls.append((key, copy.deepcopy(fields)))
        if self.fail_writes:
            raise RemoteStoreError(f"update of {collection}/{key} failed")
        document = self.documents.get((collection, key))
        if document is None:
            raise RemoteStoreError(f"no document at {collection}/{key}")
        document.update(copy.deepcopy(fields))


class ScriptedCompletionService:
    """
    Returns queued outcomes in order; an Exception outcome is raised.
    Falls back to a fixed reading once the queue is empty.
    """

    def __init__(self, outcomes: Optional[List[Any]] = None) -> None:
        self.outcomes = list(outcomes or [])
        self.requests: List[CompletionRequest] = []
        self.gate: Optional[asyncio.Event] = None

    def queue(self, *outcomes: Any) -> None:
        self.outcomes.extend(outcomes)

    async def complete(self, request: CompletionRequest) -> Any:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else text_response("The cards speak of change.")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def text_response(text: str) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=[types.Part(text=text)]))]
    )


def make_deck(size: int = 12) -> List[TarotCard]:
    return [TarotCard(name=f"Card {index}", img=f"c{index:02d}.jpg") for index in range(size)]


def make_profile(username: str = "alice", **overrides: Any) -> UserProfile:
    values = {
        "username": username,
        "password": _PASSWORD_HASH,
        "name": "Alice",
        "birth_date": datetime(1990, 8, 1, tzinfo=timezone.utc),
        "favorite_category": "Love",
        "relationship_status": "Single",
        "work_status": "Employed",
    }
    values.update(overrides)
    return UserProfile(**values)
