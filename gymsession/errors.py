"""Typed failures raised by the session engine and its collaborators.

Every failure derives from :class:`SessionError` so the calling layer can
handle the whole family with one ``except`` clause.  Addressing failures also
inherit from the matching builtin (``LookupError``, ``IndexError``,
``ValueError``) so existing handlers keep working.
"""

from __future__ import annotations


class SessionError(Exception):
    """Base class for all session engine failures."""


class SessionNotFound(SessionError, LookupError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class ExerciseNotFound(SessionError, LookupError):
    def __init__(self, exercise_id: str) -> None:
        super().__init__(f"Exercise not found in session: {exercise_id}")
        self.exercise_id = exercise_id


class SetNotFound(SessionError, LookupError):
    def __init__(self, set_id: str) -> None:
        super().__init__(f"Set not found in session: {set_id}")
        self.set_id = set_id


class GroupIndexOutOfRange(SessionError, IndexError):
    def __init__(self, index: int) -> None:
        super().__init__(f"Invalid group index: {index}")
        self.index = index


class WorkoutNotFound(SessionError, LookupError):
    def __init__(self, workout_id: str) -> None:
        super().__init__(f"Workout not found: {workout_id}")
        self.workout_id = workout_id


class InvalidInput(SessionError, ValueError):
    """Raised when a value fails validation (negative weight, zero reps...)."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid input: {reason}")
        self.reason = reason


class InvalidTransition(SessionError):
    """Raised when a lifecycle action is not allowed in the current state."""

    def __init__(self, state: str, action: str) -> None:
        super().__init__(f"Cannot {action} a session that is {state}")
        self.state = state
        self.action = action


class ActiveSessionAlreadyExists(SessionError):
    def __init__(self, session_id: str | None = None) -> None:
        if session_id:
            message = (
                f"Another session ({session_id}) is already active. "
                "Complete or cancel it first."
            )
        else:
            message = "Another session is already active."
        super().__init__(message)
        self.session_id = session_id


class RoundNotReady(SessionError):
    """The current round still has incomplete sets.

    Callers should treat this as "wait" rather than as a user-facing error.
    """

    def __init__(self, group_index: int, current_round: int) -> None:
        super().__init__(
            f"Round {current_round} of group {group_index} is not complete"
        )
        self.group_index = group_index
        self.current_round = current_round


class PersistenceFailed(SessionError):
    """Wraps an I/O failure reported by a storage collaborator."""

    def __init__(self, underlying: BaseException) -> None:
        super().__init__(f"Persistence failed: {underlying}")
        self.underlying = underlying
