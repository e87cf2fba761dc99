"""Round progression for supersets and circuits.

A group runs round by round.  Round ``k`` is complete once every exercise in
the group has its set at position ``k - 1`` completed.  Advancing is always an
explicit call; completing a set never moves the round on its own.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable

from . import DEFAULT_CIRCUIT_REST, DEFAULT_SUPERSET_REST
from .errors import InvalidInput, RoundNotReady
from .models import ExerciseGroup, ExerciseRecord, new_id


def _round_set_completed(exercise: ExerciseRecord, round_number: int) -> bool:
    index = round_number - 1
    if index < 0 or index >= len(exercise.sets):
        return False
    return exercise.sets[index].completed


def can_advance_to_next_round(group: ExerciseGroup) -> bool:
    """Return ``True`` if every exercise finished its current-round set."""

    if group.current_round > group.total_rounds:
        return False
    return all(
        _round_set_completed(ex, group.current_round) for ex in group.exercises
    )


def advance_to_next_round(group: ExerciseGroup) -> ExerciseGroup:
    """Return ``group`` moved on by one round.

    Raises :class:`RoundNotReady` instead of forcing the advance when the
    current round still has open sets.
    """

    if not can_advance_to_next_round(group):
        raise RoundNotReady(group.group_index, group.current_round)
    advanced = replace(group, current_round=group.current_round + 1)
    if advanced.is_completed:
        logging.info(
            "Group %s completed all %s rounds", group.group_index, group.total_rounds
        )
    else:
        logging.info(
            "Group %s advanced to round %s of %s",
            group.group_index,
            advanced.current_round,
            group.total_rounds,
        )
    return advanced


def round_progress(group: ExerciseGroup) -> float:
    """Fraction of exercises whose current-round set is completed."""

    if not group.exercises:
        return 0.0
    done = sum(
        1 for ex in group.exercises if _round_set_completed(ex, group.current_round)
    )
    return done / len(group.exercises)


def overall_progress(group: ExerciseGroup) -> float:
    """Progress across all rounds, clamped to ``[0, 1]``."""

    total = (group.current_round - 1) + round_progress(group)
    return min(max(total / group.total_rounds, 0.0), 1.0)


def default_group_rest(
    exercise_count: int,
    superset_rest: float = DEFAULT_SUPERSET_REST,
    circuit_rest: float = DEFAULT_CIRCUIT_REST,
) -> float:
    """Rest after a round when the template does not name one."""

    return superset_rest if exercise_count == 2 else circuit_rest


def build_group(
    exercises: Iterable[ExerciseRecord],
    *,
    group_index: int = 0,
    total_rounds: int | None = None,
    rest_after_group: float | None = None,
    superset_rest: float = DEFAULT_SUPERSET_REST,
    circuit_rest: float = DEFAULT_CIRCUIT_REST,
    group_id: str | None = None,
) -> ExerciseGroup:
    """Create a fresh group at round 1.

    Every exercise must carry the same number of sets; that count becomes the
    group's ``total_rounds``.  An explicit ``total_rounds`` must agree with it.
    """

    exercises = tuple(exercises)
    if not exercises:
        raise InvalidInput("exercise group is empty")
    if len(exercises) < 2:
        raise InvalidInput("an exercise group needs at least two exercises")
    counts = {len(ex.sets) for ex in exercises}
    if len(counts) != 1:
        raise InvalidInput(
            f"exercises in a group need the same number of sets, got {sorted(counts)}"
        )
    set_count = counts.pop()
    if total_rounds is not None and total_rounds != set_count:
        raise InvalidInput(
            f"group declares {total_rounds} rounds but its exercises have {set_count} sets"
        )
    if rest_after_group is None:
        rest_after_group = default_group_rest(
            len(exercises), superset_rest, circuit_rest
        )
    return ExerciseGroup(
        exercises=exercises,
        total_rounds=set_count,
        group_index=group_index,
        current_round=1,
        rest_after_group=rest_after_group,
        id=group_id or new_id(),
    )
