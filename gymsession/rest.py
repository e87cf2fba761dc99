"""Rest period resolution after a set.

Nothing here starts a timer.  The functions only work out how long the
caller should rest and which round/group milestones were just reached, so the
presentation layer can pick the countdown and notification copy.
"""

from __future__ import annotations

from dataclasses import dataclass

from . import DEFAULT_REST_DURATION
from .errors import SetNotFound
from .groups import can_advance_to_next_round
from .models import ExerciseGroup, ExerciseRecord, SessionAggregate, SetRecord


@dataclass(frozen=True)
class SetFeedback:
    """What the presenter needs after a set was toggled."""

    rest_seconds: float
    set_completed: bool
    exercise_finished: bool
    round_completed: bool = False
    group_completed: bool = False


def _position(exercise: ExerciseRecord, set_record: SetRecord) -> int:
    position = exercise.set_position(set_record.id)
    if position is None:
        raise SetNotFound(set_record.id)
    return position


def completes_round(group: ExerciseGroup, position: int) -> bool:
    """Return ``True`` if the set at ``position`` closes the current round."""

    return position == group.current_round - 1 and can_advance_to_next_round(group)


def resolve_rest_time(
    set_record: SetRecord,
    exercise: ExerciseRecord,
    group: ExerciseGroup | None = None,
    workout_default: float = DEFAULT_REST_DURATION,
) -> float:
    """Return the rest duration in seconds to use after ``set_record``.

    Precedence, highest first: the set's own override (or the exercise's
    per-set rest entry for that position), the group's rest when this set
    closes the round, the exercise rest, the workout default.
    """

    position = _position(exercise, set_record)
    if set_record.rest_time_override is not None:
        return set_record.rest_time_override
    per_set = exercise.per_set_rest_times
    if per_set and position < len(per_set):
        return per_set[position]
    if group is not None and completes_round(group, position):
        return group.rest_after_group
    if exercise.rest_time_to_next is not None:
        return exercise.rest_time_to_next
    return workout_default


def set_feedback(
    session: SessionAggregate,
    exercise_id: str,
    set_id: str,
    workout_default: float | None = None,
) -> SetFeedback:
    """Describe the effect of the latest toggle of ``set_id``.

    ``session`` is the aggregate returned by the completion call.
    """

    group_position, exercise = session.locate(exercise_id)
    position = exercise.set_position(set_id)
    if position is None:
        raise SetNotFound(set_id)
    set_record = exercise.sets[position]
    group = None
    if group_position is not None:
        group = session.exercise_groups[group_position]
    default = session.default_rest if workout_default is None else workout_default

    round_completed = False
    group_completed = False
    if group is not None and set_record.completed:
        round_completed = completes_round(group, position)
        group_completed = round_completed and group.current_round == group.total_rounds

    return SetFeedback(
        rest_seconds=resolve_rest_time(set_record, exercise, group, default),
        set_completed=set_record.completed,
        exercise_finished=exercise.is_finished,
        round_completed=round_completed,
        group_completed=group_completed,
    )
