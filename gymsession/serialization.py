"""Plain-dict and text representations of a session.

:func:`session_to_dict` produces a JSON-serialisable mapping and
:func:`session_from_dict` rebuilds an identical aggregate from it.
"""

from __future__ import annotations

import time

from .errors import InvalidInput
from .models import (
    ExerciseGroup,
    ExerciseRecord,
    GroupedMode,
    SessionAggregate,
    SessionState,
    SetRecord,
    StandardMode,
)


def set_to_dict(set_record: SetRecord) -> dict:
    return {
        "id": set_record.id,
        "weight": set_record.weight,
        "reps": set_record.reps,
        "completed": set_record.completed,
        "completed_at": set_record.completed_at,
        "order_index": set_record.order_index,
        "is_warmup": set_record.is_warmup,
        "rest_time_override": set_record.rest_time_override,
    }


def set_from_dict(data: dict) -> SetRecord:
    return SetRecord(
        id=data["id"],
        weight=data["weight"],
        reps=data["reps"],
        completed=data.get("completed", False),
        completed_at=data.get("completed_at"),
        order_index=data["order_index"],
        is_warmup=data.get("is_warmup", False),
        rest_time_override=data.get("rest_time_override"),
    )


def exercise_to_dict(exercise: ExerciseRecord) -> dict:
    return {
        "id": exercise.id,
        "catalog_exercise_id": exercise.catalog_exercise_id,
        "name": exercise.name,
        "notes": exercise.notes,
        "rest_time_to_next": exercise.rest_time_to_next,
        "per_set_rest_times": (
            list(exercise.per_set_rest_times)
            if exercise.per_set_rest_times is not None
            else None
        ),
        "order_index": exercise.order_index,
        "is_finished": exercise.is_finished,
        "sets": [set_to_dict(s) for s in exercise.sets],
    }


def exercise_from_dict(data: dict) -> ExerciseRecord:
    return ExerciseRecord(
        id=data["id"],
        catalog_exercise_id=data["catalog_exercise_id"],
        name=data.get("name", ""),
        notes=data.get("notes"),
        rest_time_to_next=data.get("rest_time_to_next"),
        per_set_rest_times=data.get("per_set_rest_times"),
        order_index=data["order_index"],
        is_finished=data.get("is_finished", False),
        sets=tuple(set_from_dict(s) for s in data.get("sets", [])),
    )


def group_to_dict(group: ExerciseGroup) -> dict:
    return {
        "id": group.id,
        "group_index": group.group_index,
        "current_round": group.current_round,
        "total_rounds": group.total_rounds,
        "rest_after_group": group.rest_after_group,
        "exercises": [exercise_to_dict(ex) for ex in group.exercises],
    }


def group_from_dict(data: dict) -> ExerciseGroup:
    return ExerciseGroup(
        id=data["id"],
        group_index=data["group_index"],
        current_round=data["current_round"],
        total_rounds=data["total_rounds"],
        rest_after_group=data["rest_after_group"],
        exercises=tuple(exercise_from_dict(ex) for ex in data["exercises"]),
    )


def session_to_dict(session: SessionAggregate) -> dict:
    """Return a JSON-serialisable representation of ``session``."""

    data = {
        "id": session.id,
        "workout_id": session.workout_id,
        "workout_name": session.workout_name,
        "state": session.state.value,
        "start_date": session.start_date,
        "end_date": session.end_date,
        "default_rest": session.default_rest,
        "external_session_ref": session.external_session_ref,
    }
    if isinstance(session.mode, GroupedMode):
        data["mode"] = "grouped"
        data["groups"] = [group_to_dict(g) for g in session.mode.groups]
    else:
        data["mode"] = "standard"
        data["exercises"] = [exercise_to_dict(ex) for ex in session.mode.exercises]
    return data


def session_from_dict(data: dict) -> SessionAggregate:
    """Reconstruct a :class:`SessionAggregate` from ``data``."""

    mode_name = data.get("mode", "standard")
    if mode_name == "grouped":
        mode = GroupedMode(tuple(group_from_dict(g) for g in data.get("groups", [])))
    elif mode_name == "standard":
        mode = StandardMode(
            tuple(exercise_from_dict(ex) for ex in data.get("exercises", []))
        )
    else:
        raise InvalidInput(f"unknown session mode: {mode_name}")
    return SessionAggregate(
        id=data["id"],
        workout_id=data["workout_id"],
        workout_name=data.get("workout_name", ""),
        state=SessionState(data["state"]),
        start_date=data["start_date"],
        end_date=data.get("end_date"),
        default_rest=data["default_rest"],
        external_session_ref=data.get("external_session_ref"),
        mode=mode,
    )


def _format_set(number: int, set_record: SetRecord) -> str:
    mark = "x" if set_record.completed else " "
    warmup = " (warmup)" if set_record.is_warmup else ""
    return f"  [{mark}] Set {number}: {set_record.weight:g} kg x {set_record.reps}{warmup}"


def session_summary(session: SessionAggregate, now: float | None = None) -> str:
    """Return a formatted text summary of the session."""

    now = time.time() if now is None else now
    lines = [f"Workout: {session.workout_name or session.workout_id}"]
    lines.append(f"State: {session.state.value}")
    start = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(session.start_date))
    lines.append(f"Start: {start}")
    if session.end_date is not None:
        end = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(session.end_date))
        lines.append(f"End:   {end}")
    m, s = divmod(int(session.duration(now)), 60)
    lines.append(f"Duration: {m}m {s}s")

    number = 0
    if isinstance(session.mode, GroupedMode):
        for group in session.mode.groups:
            kind = "Superset" if group.is_superset else "Circuit"
            if group.is_completed:
                progress = "completed"
            else:
                progress = f"round {group.current_round} of {group.total_rounds}"
            lines.append(f"\n{kind} {group.group_index + 1} ({progress})")
            for exercise in group.exercises:
                number += 1
                lines.extend(_exercise_lines(number, exercise))
    else:
        for exercise in session.mode.exercises:
            number += 1
            lines.extend(_exercise_lines(number, exercise))
    return "\n".join(lines)


def _exercise_lines(number: int, exercise: ExerciseRecord) -> list[str]:
    done = " (finished)" if exercise.is_finished else ""
    lines = [f"\n{number}. {exercise.name or exercise.catalog_exercise_id}{done}"]
    if exercise.notes:
        lines.append(f"  Notes: {exercise.notes}")
    for idx, set_record in enumerate(exercise.sets, 1):
        lines.append(_format_set(idx, set_record))
    return lines
