# tarotapp/services/sync_services.py
"""
Reconciles the in-memory user profile with the remote document store and the
local cache.

Reads:
  - start(): cache restore first, then a background remote fetch that
    overwrites whatever the cache produced.
  - fetch_user_info(): one remote fetch at a time per coordinator; a second
    call while one is in flight returns immediately.

Writes (history append/delete, profile edit):
  - applied to memory first and announced to listeners,
  - the whole affected history array (or the edited fields) is written,
  - on success the cache is refreshed,
  - on failure memory is restored to the prior snapshot and SyncError raised.
Writes from one coordinator are serialised by a lock.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from tarotapp.models.user_models import (
    ProfileUpdate,
    QuestionRecord,
    ReadingCategory,
    TarotReading,
    UserProfile,
)
from tarotapp.services.cache_services import LocalCache
from tarotapp.services.database.document_database_services import DocumentStore, RemoteStoreError
from tarotapp.services.document_codec import (
    encode_timestamp,
    parse_profile_document,
    profile_fields_to_document,
    profile_to_document,
    question_history_to_document,
    tarot_history_to_document,
)

logger = logging.getLogger(__name__)

ProfileListener = Callable[[Optional[UserProfile]], None]


class SyncError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def log_refresh_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background refresh failed: {exc!r}")


class SyncCoordinator:
    def __init__(self, store: DocumentStore, cache: LocalCache, collection: str = "users", timeout: float = 10.0):
        self.store = store
        self.cache = cache
        self.collection = collection
        self.timeout = timeout

        self.profile: Optional[UserProfile] = None
        self.is_fetching = False
        self.refresh_task: Optional[asyncio.Task] = None
        self._listeners: List[ProfileListener] = []
        self._write_lock = asyncio.Lock()

    # -- observation -------------------------------------------------------

    def add_listener(self, listener: ProfileListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set_profile(self, profile: Optional[UserProfile]) -> None:
        self.profile = profile
        for listener in list(self._listeners):
            listener(profile)

    async def _remote(self, operation: Awaitable[Any]) -> Any:
        return await asyncio.wait_for(operation, timeout=self.timeout)

    # -- reads -------------------------------------------------------------

    async def restore_from_cache(self) -> Optional[UserProfile]:
        cached = await self.cache.load()
        if cached is not None:
            logger.info(f"Restored {cached.username} from local cache")
            self._set_profile(cached)
        return cached

    async def start(self, username: Optional[str] = None) -> Optional[UserProfile]:
        """
        Cache restore, then a remote refresh scheduled in the background.
        Returns whatever the cache produced without waiting for the network.
        """
        restored = await self.restore_from_cache()
        target = username or (restored.username if restored is not None else None)
        self.refresh_task = asyncio.create_task(self.fetch_user_info(target))
        self.refresh_task.add_done_callback(log_refresh_failure)
        return restored

    async def fetch_user_info(self, username: Optional[str] = None) -> Optional[UserProfile]:
        if self.is_fetching:
            logger.info("Fetching already in progress, skipping duplicate request.")
            return None

        self.is_fetching = True
        try:
            target = username or (self.profile.username if self.profile is not None else None)
            if target is None:
                target = await self.cache.load_username()
            if target is None:
                logger.warning("No username known, skipping remote fetch.")
                return None

            logger.info(f"Fetching user info for {target}")
            try:
                fields = await self._remote(self.store.fetch_document(self.collection, target))
            except (RemoteStoreError, asyncio.TimeoutError) as e:
                logger.error(f"Remote fetch failed for {target}: {e!r}")
                return None

            if fields is None:
                logger.warning(f"No remote document for {target}")
                return None

            result = parse_profile_document(target, fields)
            if not result.ok:
                logger.error(f"Could not parse profile for {target}: {[(e.field, e.reason) for e in result.errors]}")
                return None

            profile = result.value
            logger.info(
                f"Fetched {target}: {len(profile.tarot_history)} reading(s), {len(profile.question_history)} question(s)"
            )
            self._set_profile(profile)
            await self.cache.save(profile)
            return profile
        finally:
            self.is_fetching = False

    async def adopt(self, profile: UserProfile) -> None:
        """Takes ownership of a profile obtained elsewhere (login, registration)."""
        self._set_profile(profile)
        await self.cache.save(profile)

    async def create_profile(self, profile: UserProfile) -> None:
        try:
            await self._remote(self.store.set_document(self.collection, profile.username, profile_to_document(profile)))
        except (RemoteStoreError, asyncio.TimeoutError) as e:
            logger.error(f"Could not create profile for {profile.username}: {e!r}")
            raise SyncError("The user could not be saved.") from e
        await self.adopt(profile)

    async def clear(self) -> None:
        if self.refresh_task is not None and not self.refresh_task.done():
            self.refresh_task.cancel()
        self._set_profile(None)
        await self.cache.clear()

    # -- writes ------------------------------------------------------------

    def _require_profile(self) -> UserProfile:
        if self.profile is None:
            raise SyncError("No user is signed in.")
        return self.profile

    async def _commit(self, updated: UserProfile, fields: Dict[str, Any], failure_message: str) -> None:
        previous = self._require_profile()
        self._set_profile(updated)
        try:
            await self._remote(self.store.update_fields(self.collection, updated.username, fields))
        except (RemoteStoreError, asyncio.TimeoutError) as e:
            logger.error(f"Remote write failed for {updated.username}, rolling back: {e!r}")
            self._set_profile(previous)
            raise SyncError(failure_message) from e
        await self.cache.save(updated)

    async def append_reading(self, reading: str, category: ReadingCategory) -> TarotReading:
        async with self._write_lock:
            profile = self._require_profile()
            entry = TarotReading(reading=reading, category=category)
            updated = profile.model_copy(update={"tarot_history": [*profile.tarot_history, entry]})
            await self._commit(
                updated,
                {"tarotHistory": tarot_history_to_document(updated.tarot_history)},
                "The reading could not be saved.",
            )
            logger.info(f"Saved reading {entry.id} for {updated.username}")
            return entry

    async def append_question(self, question: str, answer: str) -> QuestionRecord:
        async with self._write_lock:
            profile = self._require_profile()
            entry = QuestionRecord(question=question, reading=answer)
            updated = profile.model_copy(update={"question_history": [*profile.question_history, entry]})
            await self._commit(
                updated,
                {"questionHistory": question_history_to_document(updated.question_history)},
                "The question could not be saved.",
            )
            logger.info(f"Saved question {entry.id} for {updated.username}")
            return entry

    async def delete_reading(self, reading_id: UUID) -> bool:
        async with self._write_lock:
            profile = self._require_profile()
            remaining = remove_first(profile.tarot_history, reading_id)
            if remaining is None:
                return False
            updated = profile.model_copy(update={"tarot_history": remaining})
            await self._commit(
                updated,
                {"tarotHistory": tarot_history_to_document(remaining)},
                "The reading could not be deleted.",
            )
            return True

    async def delete_question(self, question_id: UUID) -> bool:
        async with self._write_lock:
            profile = self._require_profile()
            remaining = remove_first(profile.question_history, question_id)
            if remaining is None:
                return False
            updated = profile.model_copy(update={"question_history": remaining})
            await self._commit(
                updated,
                {"questionHistory": question_history_to_document(remaining)},
                "The question could not be deleted.",
            )
            return True

    async def update_profile(self, changes: ProfileUpdate) -> UserProfile:
        async with self._write_lock:
            profile = self._require_profile()
            updated = profile.model_copy(
                update={
                    "name": changes.name,
                    "birth_date": encode_timestamp(changes.birth_date),
                    "favorite_category": changes.favorite_category.value,
                    "relationship_status": changes.relationship_status,
                    "work_status": changes.work_status,
                }
            )
            await self._commit(updated, profile_fields_to_document(updated), "The profile could not be updated.")
            return updated


def remove_first(entries: list, entry_id: UUID) -> Optional[list]:
    """Copy of `entries` without the first entry whose id matches, or None if absent."""
    for index, entry in enumerate(entries):
        if entry.id == entry_id:
            return entries[:index] + entries[index + 1:]
    return None
