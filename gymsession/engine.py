"""State transitions for a running workout session.

Every operation takes a :class:`~gymsession.models.SessionAggregate` and
returns a new one.  Preconditions are checked before anything is built, so a
failing call raises a typed :mod:`gymsession.errors` exception and the input
aggregate stays as it was.  Nothing in this module touches storage.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Iterable

from . import DEFAULT_SETS_PER_EXERCISE, MAX_NOTES_LENGTH
from .errors import (
    ExerciseNotFound,
    GroupIndexOutOfRange,
    InvalidInput,
    InvalidTransition,
    SetNotFound,
)
from .groups import advance_to_next_round
from .models import (
    ExerciseGroup,
    ExerciseRecord,
    GroupedMode,
    LastUsed,
    SessionAggregate,
    SessionState,
    SetRecord,
    StandardMode,
)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _require_editable(session: SessionAggregate) -> None:
    if session.state is SessionState.COMPLETED:
        raise InvalidTransition(session.state.value, "modify")


def _validate_weight_reps(weight: float | None, reps: int | None) -> None:
    # Zero weight is allowed for bodyweight exercises
    if weight is not None and not weight >= 0:
        raise InvalidInput(f"weight cannot be negative: {weight}")
    if reps is not None and reps <= 0:
        raise InvalidInput(f"reps must be greater than 0: {reps}")


def _find_set(exercise: ExerciseRecord, set_id: str) -> SetRecord:
    for set_record in exercise.sets:
        if set_record.id == set_id:
            return set_record
    raise SetNotFound(set_id)


def _with_sets(exercise: ExerciseRecord, sets: Iterable[SetRecord]) -> ExerciseRecord:
    """Return ``exercise`` holding ``sets`` with ``is_finished`` re-derived.

    This is the only place the finished flag is computed.
    """

    sets = tuple(sets)
    finished = bool(sets) and all(s.completed for s in sets)
    return replace(exercise, sets=sets, is_finished=finished)


def _replace_exercise(
    session: SessionAggregate, exercise: ExerciseRecord
) -> SessionAggregate:
    def swap(exercises: tuple[ExerciseRecord, ...]) -> tuple[ExerciseRecord, ...]:
        return tuple(exercise if ex.id == exercise.id else ex for ex in exercises)

    if isinstance(session.mode, GroupedMode):
        groups = tuple(
            replace(group, exercises=swap(group.exercises))
            for group in session.mode.groups
        )
        return replace(session, mode=GroupedMode(groups))
    return replace(session, mode=StandardMode(swap(session.mode.exercises)))


def _replace_group(session: SessionAggregate, group: ExerciseGroup) -> SessionAggregate:
    groups = tuple(
        group if g.id == group.id else g for g in session.mode.groups
    )
    return replace(session, mode=GroupedMode(groups))


def _group_at(session: SessionAggregate, group_index: int) -> ExerciseGroup:
    groups = session.exercise_groups
    if groups is None or not 0 <= group_index < len(groups):
        raise GroupIndexOutOfRange(group_index)
    return groups[group_index]


def _group_exercise(group: ExerciseGroup, exercise_id: str) -> ExerciseRecord:
    for exercise in group.exercises:
        if exercise.id == exercise_id:
            return exercise
    raise ExerciseNotFound(exercise_id)


def _standard_exercise(session: SessionAggregate, exercise_id: str) -> ExerciseRecord:
    group_position, exercise = session.locate(exercise_id)
    if group_position is not None:
        raise InvalidInput(
            "sets of a grouped exercise follow the group's rounds and cannot be added or removed"
        )
    return exercise


def _toggled(set_record: SetRecord) -> SetRecord:
    if set_record.completed:
        return replace(set_record, completed=False, completed_at=None)
    return replace(set_record, completed=True, completed_at=time.time())


def _toggle_in(
    session: SessionAggregate, exercise: ExerciseRecord, set_id: str
) -> SessionAggregate:
    target = _find_set(exercise, set_id)
    toggled = _toggled(target)
    updated = _with_sets(
        exercise, (toggled if s.id == set_id else s for s in exercise.sets)
    )
    if updated.is_finished and not exercise.is_finished:
        logging.info("All sets completed, exercise %s auto-finished", exercise.id)
    return _replace_exercise(session, updated)


def _edited_set(
    session: SessionAggregate,
    exercise: ExerciseRecord,
    set_id: str,
    weight: float | None,
    reps: int | None,
) -> SessionAggregate:
    target = _find_set(exercise, set_id)
    changes: dict = {}
    if weight is not None:
        changes["weight"] = weight
    if reps is not None:
        changes["reps"] = reps
    edited = replace(target, **changes)
    # Completion is untouched, so ``is_finished`` is carried over as is
    updated = replace(
        exercise, sets=tuple(edited if s.id == set_id else s for s in exercise.sets)
    )
    return _replace_exercise(session, updated)


# ------------------------------------------------------------------
# Set completion and edits
# ------------------------------------------------------------------

def complete_or_uncomplete_set(
    session: SessionAggregate, exercise_id: str, set_id: str
) -> SessionAggregate:
    """Toggle completion of ``set_id`` and re-derive the exercise's finish flag.

    Works for standard and grouped sessions alike.  Calling it twice restores
    the original completion state.
    """

    _require_editable(session)
    _, exercise = session.locate(exercise_id)
    return _toggle_in(session, exercise, set_id)


def complete_group_set(
    session: SessionAggregate, group_index: int, exercise_id: str, set_id: str
) -> SessionAggregate:
    """Toggle a set inside the group at ``group_index``.

    The round is never advanced here; see :func:`advance_round`.
    """

    _require_editable(session)
    group = _group_at(session, group_index)
    exercise = _group_exercise(group, exercise_id)
    return _toggle_in(session, exercise, set_id)


def update_set(
    session: SessionAggregate,
    exercise_id: str,
    set_id: str,
    weight: float | None = None,
    reps: int | None = None,
) -> SessionAggregate:
    """Change weight and/or reps of a set without touching its completion."""

    _require_editable(session)
    _validate_weight_reps(weight, reps)
    _, exercise = session.locate(exercise_id)
    return _edited_set(session, exercise, set_id, weight, reps)


def update_group_set(
    session: SessionAggregate,
    group_index: int,
    exercise_id: str,
    set_id: str,
    weight: float | None = None,
    reps: int | None = None,
) -> SessionAggregate:
    """Grouped-session variant of :func:`update_set`."""

    _require_editable(session)
    _validate_weight_reps(weight, reps)
    group = _group_at(session, group_index)
    exercise = _group_exercise(group, exercise_id)
    return _edited_set(session, exercise, set_id, weight, reps)


def update_all_sets(
    session: SessionAggregate,
    exercise_id: str,
    weight: float | None = None,
    reps: int | None = None,
) -> SessionAggregate:
    """Apply ``weight``/``reps`` to every incomplete set of an exercise."""

    _require_editable(session)
    _validate_weight_reps(weight, reps)
    _, exercise = session.locate(exercise_id)
    changes: dict = {}
    if weight is not None:
        changes["weight"] = weight
    if reps is not None:
        changes["reps"] = reps
    sets = tuple(
        s if s.completed else replace(s, **changes) for s in exercise.sets
    )
    return _replace_exercise(session, replace(exercise, sets=sets))


def add_set(
    session: SessionAggregate,
    exercise_id: str,
    weight: float | None = None,
    reps: int | None = None,
) -> SessionAggregate:
    """Append a set to a standard-session exercise.

    Missing values are copied from the exercise's last set.
    """

    _require_editable(session)
    exercise = _standard_exercise(session, exercise_id)
    last = exercise.sets[-1] if exercise.sets else None
    final_weight = weight if weight is not None else (last.weight if last else 0.0)
    final_reps = reps if reps is not None else (last.reps if last else 0)
    _validate_weight_reps(final_weight, final_reps)
    next_index = max((s.order_index for s in exercise.sets), default=-1) + 1
    new_set = SetRecord(weight=final_weight, reps=final_reps, order_index=next_index)
    return _replace_exercise(session, _with_sets(exercise, exercise.sets + (new_set,)))


def remove_set(
    session: SessionAggregate, exercise_id: str, set_id: str
) -> SessionAggregate:
    """Remove a set and close the gap in its siblings' ``order_index``."""

    _require_editable(session)
    exercise = _standard_exercise(session, exercise_id)
    _find_set(exercise, set_id)
    if len(exercise.sets) <= 1:
        raise InvalidInput("cannot remove the last set of an exercise")
    remaining = [s for s in exercise.sets if s.id != set_id]
    reindexed = [replace(s, order_index=i) for i, s in enumerate(remaining)]
    return _replace_exercise(session, _with_sets(exercise, reindexed))


# ------------------------------------------------------------------
# Exercise level edits
# ------------------------------------------------------------------

def update_exercise_notes(
    session: SessionAggregate, exercise_id: str, notes: str | None
) -> SessionAggregate:
    """Store trimmed ``notes`` (at most :data:`MAX_NOTES_LENGTH` characters)."""

    _require_editable(session)
    _, exercise = session.locate(exercise_id)
    text = (notes or "").strip()[:MAX_NOTES_LENGTH]
    return _replace_exercise(session, replace(exercise, notes=text or None))


def move_exercise(
    session: SessionAggregate, from_position: int, to_position: int
) -> SessionAggregate:
    """Move an exercise of a standard session to a new position.

    Positions are 0-based indices into the exercises in ``order_index``
    order.  ``order_index`` is reassigned 0..n-1 afterwards.
    """

    _require_editable(session)
    if session.is_grouped:
        raise InvalidInput("exercises of a grouped session cannot be reordered")
    exercises = list(session.mode.exercises)
    for position in (from_position, to_position):
        if not 0 <= position < len(exercises):
            raise InvalidInput(f"exercise position out of range: {position}")
    moved = exercises.pop(from_position)
    exercises.insert(to_position, moved)
    reordered = tuple(replace(ex, order_index=i) for i, ex in enumerate(exercises))
    return replace(session, mode=StandardMode(reordered))


def add_exercise(
    session: SessionAggregate,
    catalog_exercise_id: str,
    *,
    name: str = "",
    weight: float = 0.0,
    reps: int = 0,
    set_count: int = DEFAULT_SETS_PER_EXERCISE,
    rest_time: float | None = None,
) -> SessionAggregate:
    """Append a catalog exercise to a standard session."""

    _require_editable(session)
    if session.is_grouped:
        raise InvalidInput("exercises cannot be added to a grouped session")
    if set_count < 1:
        raise InvalidInput(f"set_count must be at least 1: {set_count}")
    if not weight >= 0 or reps < 0:
        raise InvalidInput(f"invalid starting values: {weight} x {reps}")
    exercises = session.mode.exercises
    next_index = max((ex.order_index for ex in exercises), default=-1) + 1
    exercise = ExerciseRecord(
        catalog_exercise_id=catalog_exercise_id,
        name=name,
        sets=tuple(
            SetRecord(weight=weight, reps=reps, order_index=i) for i in range(set_count)
        ),
        rest_time_to_next=rest_time,
        order_index=next_index,
    )
    return replace(session, mode=StandardMode(exercises + (exercise,)))


# ------------------------------------------------------------------
# Round progression
# ------------------------------------------------------------------

def advance_round(session: SessionAggregate, group_index: int) -> SessionAggregate:
    """Move the group at ``group_index`` to its next round.

    Raises :class:`~gymsession.errors.RoundNotReady` while the current round
    has incomplete sets.
    """

    _require_editable(session)
    group = _group_at(session, group_index)
    return _replace_group(session, advance_to_next_round(group))


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------

def pause_session(session: SessionAggregate) -> SessionAggregate:
    if session.state is not SessionState.ACTIVE:
        raise InvalidTransition(session.state.value, "pause")
    logging.info("Session %s paused", session.id)
    return replace(session, state=SessionState.PAUSED)


def resume_session(session: SessionAggregate) -> SessionAggregate:
    if session.state is not SessionState.PAUSED:
        raise InvalidTransition(session.state.value, "resume")
    logging.info("Session %s resumed", session.id)
    return replace(session, state=SessionState.ACTIVE)


def end_session(session: SessionAggregate) -> SessionAggregate:
    """Mark ``session`` completed and stamp its end date."""

    if not session.is_open:
        raise InvalidTransition(session.state.value, "end")
    logging.info("Session %s ended", session.id)
    return replace(session, state=SessionState.COMPLETED, end_date=time.time())


def attach_external_ref(session: SessionAggregate, ref: str | None) -> SessionAggregate:
    """Link ``session`` to an external tracking session (opaque)."""

    return replace(session, external_session_ref=ref)


def last_used_for_exercise(exercise: ExerciseRecord) -> LastUsed | None:
    """Return the heaviest completed working set of ``exercise``.

    Warmup sets never count.  On a tie the first set in order wins.  ``None``
    is returned when no working set was completed.
    """

    candidates = [s for s in exercise.sets if s.completed and not s.is_warmup]
    if not candidates:
        return None
    best = max(candidates, key=lambda s: s.weight)
    return LastUsed(
        catalog_exercise_id=exercise.catalog_exercise_id,
        weight=best.weight,
        reps=best.reps,
        completed_at=best.completed_at,
    )


def last_used_values(session: SessionAggregate) -> list[LastUsed]:
    """Last-used values for every exercise with a completed working set."""

    values = []
    for exercise in session.exercises:
        value = last_used_for_exercise(exercise)
        if value is not None:
            values.append(value)
    return values
