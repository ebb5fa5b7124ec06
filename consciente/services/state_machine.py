from consciente.models.enums import BookingStatus

VALID_TRANSITIONS = {
    BookingStatus.PENDING: [
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
    ],
    BookingStatus.CONFIRMED: [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW],
    BookingStatus.CANCELLED: [],
    BookingStatus.COMPLETED: [],
    BookingStatus.NO_SHOW: [],
}

TERMINAL_STATES = frozenset(state for state, targets in VALID_TRANSITIONS.items() if not targets)


class InvalidTransitionError(Exception):
    def __init__(self, from_state: BookingStatus, to_state: BookingStatus):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: BookingStatus, to_state: BookingStatus) -> bool:
    """Check if transition is valid. Re-applying the current status is allowed."""
    if from_state == to_state:
        return True
    allowed = VALID_TRANSITIONS.get(from_state, [])
    return to_state in allowed


def transition(from_state: BookingStatus, to_state: BookingStatus) -> BookingStatus:
    """Perform booking status transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def is_terminal(state: BookingStatus) -> bool:
    return state in TERMINAL_STATES
