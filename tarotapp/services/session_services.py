# tarotapp/services/session_services.py
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID, uuid4

from redis.asyncio import Redis

from tarotapp.data.tarot import new_shuffled_deck
from tarotapp.models.tarot_models import (
    AUTO_GENERATE,
    SelectionOutcome,
    SessionPhase,
    SpreadKind,
    TarotCard,
)
from tarotapp.models.user_models import QuestionRecord, ReadingCategory, TarotReading, UserProfile
from tarotapp.services.auth_services import authenticate_user, build_new_user
from tarotapp.services.cache_services import LocalCache
from tarotapp.services.database.document_database_services import DocumentStore
from tarotapp.services.session_state import SessionState
from tarotapp.services.sync_services import SyncCoordinator
from tarotapp.services.tarot_services import ReadingGenerator

logger = logging.getLogger(__name__)


class InputValidationError(ValueError):
    pass


class ReadingSession:
    """
    Everything one signed-in device works with: the sync coordinator and one
    SessionState per spread. Profile changes from the coordinator are copied
    into every state.
    """

    def __init__(
        self,
        device_id: str,
        coordinator: SyncCoordinator,
        generator: ReadingGenerator,
        deck_loader: Callable[[], List[TarotCard]] = new_shuffled_deck,
    ):
        self.device_id = device_id
        self.coordinator = coordinator
        self.generator = generator
        self.states: Dict[SpreadKind, SessionState] = {
            spread: SessionState(spread, deck_loader) for spread in SpreadKind
        }
        for state in self.states.values():
            if coordinator.profile is not None:
                state.set_profile(coordinator.profile)
            else:
                state.await_profile()
        self._remove_listener = coordinator.add_listener(self._on_profile_changed)
        self.last_used = datetime.now()

    def _on_profile_changed(self, profile: Optional[UserProfile]) -> None:
        for state in self.states.values():
            state.set_profile(profile)

    @property
    def profile(self) -> Optional[UserProfile]:
        return self.coordinator.profile

    def state(self, spread: SpreadKind) -> SessionState:
        return self.states[spread]

    async def select_card(self, spread: SpreadKind, card_id: UUID) -> SelectionOutcome:
        state = self.states[spread]
        outcome = state.select_card(card_id)
        if outcome is SelectionOutcome.THRESHOLD_REACHED and AUTO_GENERATE[spread]:
            await self.generate(spread)
        return outcome

    async def generate(self, spread: SpreadKind) -> None:
        state = self.states[spread]
        if spread is SpreadKind.FULL:
            await self.generator.generate_overall_reading(state)
        elif spread is SpreadKind.QUESTION:
            await self.generator.answer_question(state)
        else:
            await self.generator.generate_daily_reading(state)

    async def ask_question(self, question: str) -> None:
        question = question.strip() if question else ""
        if not question:
            raise InputValidationError("Please enter a question.")
        state = self.states[SpreadKind.QUESTION]
        if state.phase is SessionPhase.GENERATING:
            raise InputValidationError("The previous question is still being answered.")
        # A finished answer belongs to the old question; the new one gets its own.
        state.rearm_generation()
        state.set_question(question)
        await self.generator.answer_question(state)

    def set_category(self, category: ReadingCategory) -> None:
        self.states[SpreadKind.FULL].set_category(category)

    def reset(self, spread: SpreadKind) -> None:
        self.states[spread].reset()

    async def save_reading(self) -> TarotReading:
        state = self.states[SpreadKind.FULL]
        if state.phase is not SessionPhase.COMPLETE or not state.reading_text.strip():
            raise InputValidationError("There is no reading to save yet.")
        return await self.coordinator.append_reading(state.reading_text, state.selected_category)

    async def save_question(self) -> QuestionRecord:
        state = self.states[SpreadKind.QUESTION]
        if not state.question.strip() or not state.reading_text.strip() or state.phase is not SessionPhase.COMPLETE:
            raise InputValidationError("There is no answered question to save yet.")
        return await self.coordinator.append_question(state.question, state.reading_text)

    def release(self) -> None:
        """Detaches from the coordinator without touching the local cache."""
        self._remove_listener()
        if self.coordinator.refresh_task is not None and not self.coordinator.refresh_task.done():
            self.coordinator.refresh_task.cancel()

    async def close(self) -> None:
        self._remove_listener()
        await self.coordinator.clear()
        for state in self.states.values():
            state.set_profile(None)


class SessionRegistry:
    """Live sessions keyed by device id."""

    def __init__(
        self,
        store: DocumentStore,
        redis_client: Redis,
        generator: ReadingGenerator,
        collection: str = "users",
        timeout: float = 10.0,
        deck_loader: Callable[[], List[TarotCard]] = new_shuffled_deck,
        session_expiry: timedelta = timedelta(days=7),
    ):
        self.store = store
        self.redis_client = redis_client
        self.generator = generator
        self.collection = collection
        self.timeout = timeout
        self.deck_loader = deck_loader
        self.session_expiry = session_expiry
        self.sessions: Dict[str, ReadingSession] = {}

    def cleanup_expired_sessions(self) -> List[str]:
        """Drops sessions idle for longer than session_expiry. Their local caches stay."""
        now = datetime.now()
        expired_sessions = [
            device_id
            for device_id, session in self.sessions.items()
            if now - session.last_used > self.session_expiry
        ]

        for device_id in expired_sessions:
            self.sessions.pop(device_id).release()

        if expired_sessions:
            logger.info(f"Cleaned up {len(expired_sessions)} expired sessions.")
        return expired_sessions

    def _new_session(self, device_id: str) -> ReadingSession:
        self.cleanup_expired_sessions()
        coordinator = SyncCoordinator(
            self.store,
            LocalCache(self.redis_client, device_id),
            collection=self.collection,
            timeout=self.timeout,
        )
        session = ReadingSession(device_id, coordinator, self.generator, self.deck_loader)
        self.sessions[device_id] = session
        return session

    async def get_or_restore(self, device_id: str, username: Optional[str] = None) -> ReadingSession:
        """
        Returns the live session for a device. A device without one (for
        instance after a restart) is restored from its local cache, and a
        remote refresh is started in the background.
        """
        session = self.sessions.get(device_id)
        if session is not None:
            session.last_used = datetime.now()
            return session

        logger.info(f"Restoring session for device {device_id}")
        session = self._new_session(device_id)
        await session.coordinator.start(username)
        return session

    async def login(self, username: str, password: str) -> Tuple[str, ReadingSession]:
        profile = await authenticate_user(self.store, username, password, self.collection, self.timeout)
        device_id = uuid4().hex
        session = self._new_session(device_id)
        await session.coordinator.adopt(profile)
        logger.info(f"{username} logged in on device {device_id}")
        return device_id, session

    async def register(self, username: str, password: str) -> Tuple[str, ReadingSession]:
        profile = await build_new_user(self.store, username, password, self.collection, self.timeout)
        device_id = uuid4().hex
        session = self._new_session(device_id)
        try:
            await session.coordinator.create_profile(profile)
        except Exception:
            self.sessions.pop(device_id, None)
            raise
        logger.info(f"Registered {username} on device {device_id}")
        return device_id, session

    async def logout(self, device_id: str) -> None:
        session = self.sessions.pop(device_id, None)
        if session is not None:
            await session.close()
        else:
            await LocalCache(self.redis_client, device_id).clear()
        logger.info(f"Logged out device {device_id}")
