"""Tests for the per-spread selection state machine."""

from uuid import uuid4

from tarotapp.models.tarot_models import ProfilePhase, SelectionOutcome, SessionPhase, SpreadKind
from tarotapp.models.user_models import ReadingCategory
from tarotapp.services.session_state import SessionEventKind, SessionState
from tests.fakes import make_deck, make_profile


def new_state(spread: SpreadKind = SpreadKind.FULL, with_profile: bool = True) -> SessionState:
    state = SessionState(spread, make_deck)
    if with_profile:
        state.set_profile(make_profile())
    return state


class TestProfileGating:
    def test_selection_blocked_without_profile(self):
        state = new_state(with_profile=False)
        state.await_profile()
        card = state.deck[0]

        outcome = state.select_card(card.id)

        assert outcome is SelectionOutcome.BLOCKED
        assert state.profile_phase is ProfilePhase.AWAITING_PROFILE
        assert state.selected == []
        assert card in state.deck

    def test_profile_is_copied(self):
        profile = make_profile()
        state = new_state(with_profile=False)

        state.set_profile(profile)
        profile.name = "Changed"

        assert state.profile.name == "Alice"
        assert state.profile_phase is ProfilePhase.READY

    def test_clearing_profile_returns_to_idle(self):
        state = new_state()

        state.set_profile(None)

        assert state.profile_phase is ProfilePhase.IDLE
        assert state.select_card(state.deck[0].id) is SelectionOutcome.BLOCKED


class TestSelection:
    def test_moves_card_from_deck_to_selection(self):
        state = new_state()
        card = state.deck[3]

        outcome = state.select_card(card.id)

        assert outcome is SelectionOutcome.SELECTED
        assert state.selected == [card]
        assert card not in state.deck
        assert state.phase is SessionPhase.SELECTING

    def test_duplicate_is_ignored(self):
        state = new_state()
        card = state.deck[0]
        state.select_card(card.id)

        assert state.select_card(card.id) is SelectionOutcome.IGNORED
        assert len(state.selected) == 1

    def test_unknown_card_is_ignored(self):
        state = new_state()

        assert state.select_card(uuid4()) is SelectionOutcome.IGNORED

    def test_threshold_reached_at_capacity(self):
        state = new_state(SpreadKind.FULL)
        outcomes = [state.select_card(state.deck[0].id) for _ in range(7)]

        assert outcomes[:6] == [SelectionOutcome.SELECTED] * 6
        assert outcomes[6] is SelectionOutcome.THRESHOLD_REACHED
        assert state.phase is SessionPhase.READY_TO_GENERATE

    def test_selection_beyond_capacity_is_ignored(self):
        state = new_state(SpreadKind.QUESTION)
        for _ in range(3):
            state.select_card(state.deck[0].id)
        deck_size = len(state.deck)

        assert state.select_card(state.deck[0].id) is SelectionOutcome.IGNORED
        assert len(state.selected) == 3
        assert len(state.deck) == deck_size

    def test_daily_spread_takes_one_card(self):
        state = new_state(SpreadKind.DAILY)

        assert state.select_card(state.deck[0].id) is SelectionOutcome.THRESHOLD_REACHED


class TestGeneration:
    def test_begin_generation_only_once(self):
        state = new_state(SpreadKind.DAILY)
        state.select_card(state.deck[0].id)

        assert state.begin_generation() is True
        assert state.phase is SessionPhase.GENERATING
        assert state.begin_generation() is False

    def test_begin_generation_requires_full_selection(self):
        state = new_state()
        state.select_card(state.deck[0].id)

        assert state.begin_generation() is False

    def test_failed_generation_keeps_selection(self):
        state = new_state(SpreadKind.DAILY)
        state.select_card(state.deck[0].id)
        state.begin_generation()

        state.fail_generation("Error: nope")

        assert state.phase is SessionPhase.FAILED
        assert state.reading_text == "Error: nope"
        assert len(state.selected) == 1

    def test_rearm_after_completion_keeps_the_cards(self):
        state = new_state(SpreadKind.QUESTION)
        for _ in range(state.capacity):
            state.select_card(state.deck[0].id)
        chosen = list(state.selected)
        state.begin_generation()
        state.complete_generation("First answer")

        assert state.rearm_generation() is True
        assert state.phase is SessionPhase.READY_TO_GENERATE
        assert state.reading_text == ""
        assert state.selected == chosen
        assert state.begin_generation() is True

    def test_rearm_is_refused_mid_cycle(self):
        state = new_state(SpreadKind.QUESTION)
        state.select_card(state.deck[0].id)

        assert state.rearm_generation() is False

        for _ in range(state.capacity - 1):
            state.select_card(state.deck[0].id)
        state.begin_generation()

        assert state.rearm_generation() is False
        assert state.phase is SessionPhase.GENERATING


class TestReset:
    def test_reset_restores_a_full_deck(self):
        state = new_state(SpreadKind.DAILY)
        state.select_card(state.deck[0].id)
        state.begin_generation()
        state.complete_generation("Reading")
        state.set_question("Why?")

        state.reset()

        assert state.selected == []
        assert state.reading_text == ""
        assert state.question == ""
        assert state.phase is SessionPhase.NO_CARDS_SELECTED
        assert len(state.deck) == len(make_deck())

    def test_reset_allows_another_generation(self):
        state = new_state(SpreadKind.DAILY)
        state.select_card(state.deck[0].id)
        state.begin_generation()
        state.complete_generation("Reading")

        state.reset()
        state.select_card(state.deck[0].id)

        assert state.begin_generation() is True

    def test_reset_keeps_category(self):
        state = new_state()
        state.set_category(ReadingCategory.HEALTH)

        state.reset()

        assert state.selected_category is ReadingCategory.HEALTH


class TestObservation:
    def test_listeners_see_each_transition(self):
        state = new_state(SpreadKind.DAILY)
        events = []
        state.subscribe(lambda event: events.append(event.kind))

        state.select_card(state.deck[0].id)
        state.begin_generation()
        state.complete_generation("Reading")

        assert events == [
            SessionEventKind.CARD_SELECTED,
            SessionEventKind.GENERATION_STARTED,
            SessionEventKind.READING_READY,
        ]

    def test_snapshot_carries_state(self):
        state = new_state(SpreadKind.DAILY)
        snapshots = []
        state.subscribe(lambda event: snapshots.append(event.snapshot))

        state.select_card(state.deck[0].id)

        assert snapshots[0].phase is SessionPhase.READY_TO_GENERATE
        assert len(snapshots[0].selected) == 1

    def test_unsubscribe(self):
        state = new_state()
        events = []
        unsubscribe = state.subscribe(events.append)

        unsubscribe()
        state.select_card(state.deck[0].id)

        assert events == []
