"""Value types for an in-progress workout session.

Every record is an immutable dataclass.  Mutations never edit a record in
place; the engine builds a new aggregate with :func:`dataclasses.replace` and
hands it back to the caller, so a cached copy can always be swapped wholesale
for the persisted one.

Child collections are kept sorted by their explicit ``order_index`` (or
``group_index`` for groups) when a record is built.  Storage is never trusted
to return rows in a meaningful order.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from . import DEFAULT_REST_DURATION, MAX_NOTES_LENGTH
from .errors import ExerciseNotFound, InvalidInput


def new_id() -> str:
    """Return a fresh opaque identifier."""

    return uuid.uuid4().hex


class SessionState(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SetRecord:
    """One planned or performed set."""

    weight: float = 0.0
    reps: int = 0
    order_index: int = 0
    completed: bool = False
    completed_at: float | None = None
    is_warmup: bool = False
    rest_time_override: float | None = None
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if not self.weight >= 0:
            raise InvalidInput(f"weight cannot be negative: {self.weight}")
        if self.reps < 0:
            raise InvalidInput(f"reps cannot be negative: {self.reps}")
        if self.completed != (self.completed_at is not None):
            raise InvalidInput("completed_at must be set exactly when completed")

    @property
    def volume(self) -> float:
        return self.weight * self.reps


@dataclass(frozen=True)
class ExerciseRecord:
    """The in-session instance of one catalog exercise.

    ``is_finished`` is stored rather than computed on read.  Only the engine's
    set-list helpers may change it, which keeps it equal to "has sets and all
    of them are completed".
    """

    catalog_exercise_id: str
    sets: tuple[SetRecord, ...] = ()
    name: str = ""
    notes: str | None = None
    rest_time_to_next: float | None = None
    per_set_rest_times: tuple[float, ...] | None = None
    order_index: int = 0
    is_finished: bool = False
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "sets", tuple(sorted(self.sets, key=lambda s: s.order_index))
        )
        if self.per_set_rest_times is not None:
            object.__setattr__(
                self, "per_set_rest_times", tuple(self.per_set_rest_times)
            )
        if self.notes is not None and len(self.notes) > MAX_NOTES_LENGTH:
            raise InvalidInput(
                f"notes longer than {MAX_NOTES_LENGTH} characters"
            )

    @property
    def all_sets_completed(self) -> bool:
        return bool(self.sets) and all(s.completed for s in self.sets)

    @property
    def completed_sets(self) -> list[SetRecord]:
        return [s for s in self.sets if s.completed]

    def set_position(self, set_id: str) -> int | None:
        """Return the position of ``set_id`` within :attr:`sets`."""

        for position, set_record in enumerate(self.sets):
            if set_record.id == set_id:
                return position
        return None


@dataclass(frozen=True)
class ExerciseGroup:
    """Two or more exercises performed in rotation for a number of rounds.

    ``current_round`` is 1-based.  ``total_rounds + 1`` marks a group whose
    rounds are all done.
    """

    exercises: tuple[ExerciseRecord, ...]
    total_rounds: int
    group_index: int = 0
    current_round: int = 1
    rest_after_group: float = DEFAULT_REST_DURATION
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "exercises",
            tuple(sorted(self.exercises, key=lambda e: e.order_index)),
        )
        if len(self.exercises) < 2:
            raise InvalidInput("an exercise group needs at least two exercises")
        if self.total_rounds < 1:
            raise InvalidInput(f"total_rounds must be at least 1: {self.total_rounds}")
        if not 1 <= self.current_round <= self.total_rounds + 1:
            raise InvalidInput(
                f"current_round {self.current_round} outside 1..{self.total_rounds + 1}"
            )

    @property
    def exercise_count(self) -> int:
        return len(self.exercises)

    @property
    def is_superset(self) -> bool:
        return len(self.exercises) == 2

    @property
    def is_circuit(self) -> bool:
        return len(self.exercises) >= 3

    @property
    def is_completed(self) -> bool:
        return self.current_round > self.total_rounds


@dataclass(frozen=True)
class StandardMode:
    """Exercises performed one after another."""

    exercises: tuple[ExerciseRecord, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "exercises",
            tuple(sorted(self.exercises, key=lambda e: e.order_index)),
        )


@dataclass(frozen=True)
class GroupedMode:
    """Exercises performed as supersets or circuits."""

    groups: tuple[ExerciseGroup, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "groups", tuple(sorted(self.groups, key=lambda g: g.group_index))
        )


SessionMode = Union[StandardMode, GroupedMode]


@dataclass(frozen=True)
class SessionAggregate:
    """A single running (or finished) workout and everything it owns."""

    workout_id: str
    mode: SessionMode
    start_date: float
    workout_name: str = ""
    state: SessionState = SessionState.ACTIVE
    end_date: float | None = None
    default_rest: float = DEFAULT_REST_DURATION
    external_session_ref: str | None = None
    id: str = field(default_factory=new_id)

    @property
    def is_grouped(self) -> bool:
        return isinstance(self.mode, GroupedMode)

    @property
    def is_open(self) -> bool:
        return self.state in (SessionState.ACTIVE, SessionState.PAUSED)

    @property
    def exercise_groups(self) -> tuple[ExerciseGroup, ...] | None:
        if isinstance(self.mode, GroupedMode):
            return self.mode.groups
        return None

    @property
    def exercises(self) -> tuple[ExerciseRecord, ...]:
        """All exercises, flattened group by group for grouped sessions."""

        if isinstance(self.mode, GroupedMode):
            return tuple(ex for group in self.mode.groups for ex in group.exercises)
        return self.mode.exercises

    def locate(self, exercise_id: str) -> tuple[int | None, ExerciseRecord]:
        """Return ``(group position, exercise)`` for ``exercise_id``.

        The group position is ``None`` for standard sessions.
        """

        if isinstance(self.mode, GroupedMode):
            for position, group in enumerate(self.mode.groups):
                for exercise in group.exercises:
                    if exercise.id == exercise_id:
                        return position, exercise
        else:
            for exercise in self.mode.exercises:
                if exercise.id == exercise_id:
                    return None, exercise
        raise ExerciseNotFound(exercise_id)

    def duration(self, now: float) -> float:
        """Seconds elapsed between start and end (or ``now`` while open)."""

        end = self.end_date if self.end_date is not None else now
        return max(0.0, end - self.start_date)

    @property
    def total_volume(self) -> float:
        return sum(
            s.volume
            for ex in self.exercises
            for s in ex.sets
            if s.completed and not s.is_warmup
        )


@dataclass(frozen=True)
class CatalogExercise:
    """Catalog entry as seen by the session engine."""

    id: str
    name: str = ""
    last_used_weight: float | None = None
    last_used_reps: int | None = None
    last_used_at: float | None = None


@dataclass(frozen=True)
class LastUsed:
    """Weight and reps to remember for the next session of an exercise."""

    catalog_exercise_id: str
    weight: float
    reps: int
    completed_at: float | None = None
