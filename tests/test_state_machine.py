import pytest

from consciente.models import BookingStatus
from consciente.services.state_machine import (
    TERMINAL_STATES,
    InvalidTransitionError,
    can_transition,
    is_terminal,
    transition,
)


class TestValidTransitions:
    @pytest.mark.parametrize(
        "target",
        [BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW],
    )
    def test_pending_to_any_other_state(self, target):
        assert transition(BookingStatus.PENDING, target) == target

    def test_confirmed_to_completed(self):
        assert transition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED) == BookingStatus.COMPLETED

    def test_confirmed_to_cancelled(self):
        assert transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED) == BookingStatus.CANCELLED

    def test_same_state_is_allowed(self):
        assert transition(BookingStatus.CONFIRMED, BookingStatus.CONFIRMED) == BookingStatus.CONFIRMED
        assert transition(BookingStatus.CANCELLED, BookingStatus.CANCELLED) == BookingStatus.CANCELLED


class TestInvalidTransitions:
    def test_confirmed_back_to_pending(self):
        with pytest.raises(InvalidTransitionError):
            transition(BookingStatus.CONFIRMED, BookingStatus.PENDING)

    @pytest.mark.parametrize("terminal", [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW])
    def test_terminal_states_do_not_move(self, terminal):
        with pytest.raises(InvalidTransitionError):
            transition(terminal, BookingStatus.CONFIRMED)

    def test_error_carries_states(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(BookingStatus.COMPLETED, BookingStatus.PENDING)
        assert exc_info.value.from_state == BookingStatus.COMPLETED
        assert exc_info.value.to_state == BookingStatus.PENDING


class TestHelperFunctions:
    def test_can_transition(self):
        assert can_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED) is True
        assert can_transition(BookingStatus.NO_SHOW, BookingStatus.PENDING) is False

    def test_terminal_states(self):
        assert TERMINAL_STATES == {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
        assert is_terminal(BookingStatus.COMPLETED) is True
        assert is_terminal(BookingStatus.PENDING) is False
