# tarotapp/services/session_state.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional
from uuid import UUID

from tarotapp.models.tarot_models import (
    SPREAD_CAPACITY,
    ProfilePhase,
    SelectionOutcome,
    SessionPhase,
    SessionSnapshot,
    SpreadKind,
    TarotCard,
)
from tarotapp.models.user_models import ReadingCategory, UserProfile

logger = logging.getLogger(__name__)


class SessionEventKind(str, Enum):
    DECK_LOADED = "deck_loaded"
    PROFILE_CHANGED = "profile_changed"
    CARD_SELECTED = "card_selected"
    CATEGORY_CHANGED = "category_changed"
    QUESTION_CHANGED = "question_changed"
    LOADING_CHANGED = "loading_changed"
    GENERATION_STARTED = "generation_started"
    READING_READY = "reading_ready"
    GENERATION_FAILED = "generation_failed"
    MESSAGE = "message"
    REARMED = "rearmed"
    RESET = "reset"


@dataclass
class SessionEvent:
    kind: SessionEventKind
    snapshot: SessionSnapshot


Listener = Callable[[SessionEvent], None]


class SessionState:
    """
    In-memory card-selection state for one spread.

    Phases run NO_CARDS_SELECTED -> SELECTING -> READY_TO_GENERATE ->
    GENERATING -> COMPLETE (or FAILED). reset() leaves COMPLETE/FAILED for a
    fresh deck; rearm_generation() goes back to READY_TO_GENERATE with the
    same cards.
    Card interaction is gated on a profile being present.

    Listeners are called synchronously after every transition.
    """

    def __init__(self, spread: SpreadKind, deck_loader: Callable[[], List[TarotCard]]):
        self.spread = spread
        self.capacity = SPREAD_CAPACITY[spread]
        self._deck_loader = deck_loader
        self._listeners: List[Listener] = []

        self.deck: List[TarotCard] = []
        self.selected: List[TarotCard] = []
        self.reading_text = ""
        self.is_loading = False
        self.selected_category = ReadingCategory.GENERAL
        self.question = ""
        self.phase = SessionPhase.NO_CARDS_SELECTED
        self.profile: Optional[UserProfile] = None
        self.profile_phase = ProfilePhase.IDLE
        self._generation_started = False

        self.load_deck()

    # -- observation -------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            spread=self.spread,
            phase=self.phase,
            profile_phase=self.profile_phase,
            deck=list(self.deck),
            selected=list(self.selected),
            reading_text=self.reading_text,
            is_loading=self.is_loading,
            selected_category=self.selected_category,
            question=self.question,
        )

    def _emit(self, kind: SessionEventKind) -> None:
        if not self._listeners:
            return
        event = SessionEvent(kind=kind, snapshot=self.snapshot())
        for listener in list(self._listeners):
            listener(event)

    # -- profile gating ----------------------------------------------------

    def await_profile(self) -> None:
        if self.profile is None:
            self.profile_phase = ProfilePhase.AWAITING_PROFILE
            self._emit(SessionEventKind.PROFILE_CHANGED)

    def set_profile(self, profile: Optional[UserProfile]) -> None:
        # Value copy: later edits to the caller's profile must be re-synced explicitly.
        self.profile = profile.model_copy(deep=True) if profile is not None else None
        self.profile_phase = ProfilePhase.READY if profile is not None else ProfilePhase.IDLE
        self._emit(SessionEventKind.PROFILE_CHANGED)

    # -- deck and selection ------------------------------------------------

    def load_deck(self) -> None:
        self.deck = self._deck_loader()
        self._emit(SessionEventKind.DECK_LOADED)

    def select_card(self, card_id: UUID) -> SelectionOutcome:
        if self.profile_phase is not ProfilePhase.READY:
            logger.debug(f"Ignoring card selection on {self.spread.value}: no profile yet")
            return SelectionOutcome.BLOCKED
        if len(self.selected) >= self.capacity:
            return SelectionOutcome.IGNORED
        if any(card.id == card_id for card in self.selected):
            return SelectionOutcome.IGNORED

        card = next((card for card in self.deck if card.id == card_id), None)
        if card is None:
            return SelectionOutcome.IGNORED

        self.deck = [c for c in self.deck if c.id != card_id]
        self.selected.append(card)

        if len(self.selected) == self.capacity:
            self.phase = SessionPhase.READY_TO_GENERATE
            self._emit(SessionEventKind.CARD_SELECTED)
            return SelectionOutcome.THRESHOLD_REACHED

        self.phase = SessionPhase.SELECTING
        self._emit(SessionEventKind.CARD_SELECTED)
        return SelectionOutcome.SELECTED

    def set_category(self, category: ReadingCategory) -> None:
        self.selected_category = category
        self._emit(SessionEventKind.CATEGORY_CHANGED)

    def set_question(self, question: str) -> None:
        self.question = question
        self._emit(SessionEventKind.QUESTION_CHANGED)

    # -- generation --------------------------------------------------------

    def begin_generation(self) -> bool:
        """Moves READY_TO_GENERATE -> GENERATING once per reset cycle."""
        if self.phase is not SessionPhase.READY_TO_GENERATE or self._generation_started:
            return False
        self._generation_started = True
        self.phase = SessionPhase.GENERATING
        self._emit(SessionEventKind.GENERATION_STARTED)
        return True

    def rearm_generation(self) -> bool:
        """
        Opens a new generation cycle over the same cards once the last one has
        finished. Returns False while the selection is incomplete or a
        generation is still running.
        """
        if len(self.selected) < self.capacity:
            return False
        if self.phase not in (SessionPhase.COMPLETE, SessionPhase.FAILED):
            return self.phase is SessionPhase.READY_TO_GENERATE
        self._generation_started = False
        self.reading_text = ""
        self.phase = SessionPhase.READY_TO_GENERATE
        self._emit(SessionEventKind.REARMED)
        return True

    def set_loading(self, is_loading: bool) -> None:
        self.is_loading = is_loading
        self._emit(SessionEventKind.LOADING_CHANGED)

    def show_message(self, message: str) -> None:
        """Inline message that does not change phase (e.g. not enough cards yet)."""
        self.reading_text = message
        self._emit(SessionEventKind.MESSAGE)

    def complete_generation(self, text: str) -> None:
        self.reading_text = text
        self.phase = SessionPhase.COMPLETE
        self._emit(SessionEventKind.READING_READY)

    def fail_generation(self, message: str) -> None:
        self.reading_text = message
        self.phase = SessionPhase.FAILED
        self._emit(SessionEventKind.GENERATION_FAILED)

    def reset(self) -> None:
        self.selected = []
        self.reading_text = ""
        self.question = ""
        self.is_loading = False
        self.phase = SessionPhase.NO_CARDS_SELECTED
        self._generation_started = False
        self.deck = self._deck_loader()
        self._emit(SessionEventKind.RESET)
