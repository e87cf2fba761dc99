"""Workout templates and turning one into a fresh session.

Templates are read-only input.  They are stored in a JSON document of the
form::

    {"workouts": [
        {"id": "push", "name": "Push Day", "default_rest": 90,
         "exercises": [{"exercise_id": "bench", "name": "Bench Press",
                        "sets": 3, "reps": 8, "weight": 60, "rest": 120}]},
        {"id": "arms", "name": "Arms Superset",
         "groups": [{"rest_after_group": 90, "exercises": [...]}]}
    ]}

A workout has either ``exercises`` (standard) or ``groups`` (supersets and
circuits), never both.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from . import (
    DEFAULT_CIRCUIT_REST,
    DEFAULT_REST_DURATION,
    DEFAULT_SETS_PER_EXERCISE,
    DEFAULT_SUPERSET_REST,
    DEFAULT_TEMPLATES_PATH,
)
from .errors import InvalidInput
from .groups import build_group
from .models import (
    CatalogExercise,
    ExerciseRecord,
    GroupedMode,
    SessionAggregate,
    SessionState,
    SetRecord,
    StandardMode,
)


@dataclass(frozen=True)
class TemplateExercise:
    exercise_id: str
    name: str = ""
    sets: int = DEFAULT_SETS_PER_EXERCISE
    reps: int | None = None
    weight: float | None = None
    rest: float | None = None
    per_set_rest: tuple[float, ...] | None = None
    warmup_sets: int = 0
    warmup_weight: float | None = None
    notes: str | None = None
    order_index: int = 0


@dataclass(frozen=True)
class TemplateGroup:
    exercises: tuple[TemplateExercise, ...]
    rounds: int | None = None
    rest_after_group: float | None = None
    group_index: int = 0
    id: str | None = None


@dataclass(frozen=True)
class WorkoutTemplate:
    id: str
    name: str
    exercises: tuple[TemplateExercise, ...] = ()
    groups: tuple[TemplateGroup, ...] = ()
    default_rest: float | None = None

    @property
    def is_grouped(self) -> bool:
        return bool(self.groups)


def _optional(value, convert):
    return convert(value) if value is not None else None


def _exercise_from_dict(data: dict, position: int) -> TemplateExercise:
    per_set = data.get("per_set_rest")
    return TemplateExercise(
        exercise_id=str(data["exercise_id"]),
        name=data.get("name", ""),
        sets=int(data.get("sets", DEFAULT_SETS_PER_EXERCISE)),
        reps=_optional(data.get("reps"), int),
        weight=_optional(data.get("weight"), float),
        rest=_optional(data.get("rest"), float),
        per_set_rest=tuple(float(r) for r in per_set) if per_set is not None else None,
        warmup_sets=int(data.get("warmup_sets", 0)),
        warmup_weight=_optional(data.get("warmup_weight"), float),
        notes=data.get("notes"),
        order_index=int(data.get("order_index", position)),
    )


def template_from_dict(data: dict) -> WorkoutTemplate:
    """Build a :class:`WorkoutTemplate` from its JSON representation."""

    try:
        exercises = tuple(
            _exercise_from_dict(ex, pos)
            for pos, ex in enumerate(data.get("exercises", []))
        )
        groups = tuple(
            TemplateGroup(
                exercises=tuple(
                    _exercise_from_dict(ex, pos)
                    for pos, ex in enumerate(group.get("exercises", []))
                ),
                rounds=_optional(group.get("rounds"), int),
                rest_after_group=_optional(group.get("rest_after_group"), float),
                group_index=int(group.get("group_index", g_pos)),
                id=group.get("id"),
            )
            for g_pos, group in enumerate(data.get("groups", []))
        )
        return WorkoutTemplate(
            id=str(data["id"]),
            name=data.get("name", ""),
            exercises=exercises,
            groups=groups,
            default_rest=_optional(data.get("default_rest"), float),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        raise InvalidInput(f"malformed workout template: {exc}") from exc


class JsonTemplateProvider:
    """Read-only access to the workout templates stored in a JSON file."""

    def __init__(self, path: Path = DEFAULT_TEMPLATES_PATH) -> None:
        self.path = Path(path)

    def list(self) -> list[WorkoutTemplate]:
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logging.exception("Cannot read workout templates from %s", self.path)
            raise InvalidInput(f"unreadable workout templates file {self.path}") from exc
        if not isinstance(data, dict):
            raise InvalidInput(f"{self.path} does not hold a workouts document")
        return [template_from_dict(item) for item in data.get("workouts", [])]

    def fetch(self, workout_id: str) -> WorkoutTemplate | None:
        for template in self.list():
            if template.id == workout_id:
                return template
        return None


# ------------------------------------------------------------------
# Materialisation
# ------------------------------------------------------------------

def _starting_values(
    item: TemplateExercise, last_used: Mapping[str, CatalogExercise]
) -> tuple[float, int, str]:
    entry = last_used.get(item.exercise_id)
    weight = item.weight if item.weight is not None else 0.0
    reps = item.reps if item.reps is not None else 0
    name = item.name
    if entry is not None:
        if entry.last_used_weight is not None:
            weight = entry.last_used_weight
        if entry.last_used_reps is not None:
            reps = entry.last_used_reps
        name = name or entry.name
    return weight, reps, name


def _materialise_exercise(
    item: TemplateExercise,
    order_index: int,
    last_used: Mapping[str, CatalogExercise],
) -> ExerciseRecord:
    if item.sets < 1:
        raise InvalidInput(f"{item.exercise_id}: sets must be at least 1")
    if item.warmup_sets < 0:
        raise InvalidInput(f"{item.exercise_id}: warmup_sets cannot be negative")
    weight, reps, name = _starting_values(item, last_used)
    warmup_weight = item.warmup_weight if item.warmup_weight is not None else weight
    per_set = item.per_set_rest or ()

    sets = []
    total = item.warmup_sets + item.sets
    for index in range(total):
        is_warmup = index < item.warmup_sets
        sets.append(
            SetRecord(
                weight=warmup_weight if is_warmup else weight,
                reps=reps,
                order_index=index,
                is_warmup=is_warmup,
                rest_time_override=per_set[index] if index < len(per_set) else None,
            )
        )
    return ExerciseRecord(
        catalog_exercise_id=item.exercise_id,
        name=name,
        sets=tuple(sets),
        notes=item.notes,
        rest_time_to_next=item.rest,
        per_set_rest_times=item.per_set_rest,
        order_index=order_index,
    )


def _in_template_order(items) -> list:
    return sorted(items, key=lambda item: item.order_index)


def start_session(
    template: WorkoutTemplate,
    last_used: Mapping[str, CatalogExercise] | None = None,
    *,
    default_rest: float = DEFAULT_REST_DURATION,
    superset_rest: float = DEFAULT_SUPERSET_REST,
    circuit_rest: float = DEFAULT_CIRCUIT_REST,
) -> SessionAggregate:
    """Create an active session snapshotting ``template``.

    ``last_used`` maps catalog exercise ids to catalog entries; remembered
    weight and reps replace the template targets.  ``order_index`` values are
    assigned 0..n-1 following the template order.
    """

    last_used = last_used or {}
    if template.exercises and template.groups:
        raise InvalidInput("a workout cannot have both exercises and groups")

    if template.groups:
        groups = []
        for g_pos, group in enumerate(
            sorted(template.groups, key=lambda g: g.group_index)
        ):
            if any(item.warmup_sets for item in group.exercises):
                raise InvalidInput("exercises in a group cannot have warmup sets")
            exercises = [
                _materialise_exercise(item, i, last_used)
                for i, item in enumerate(_in_template_order(group.exercises))
            ]
            groups.append(
                build_group(
                    exercises,
                    group_index=g_pos,
                    total_rounds=group.rounds,
                    rest_after_group=group.rest_after_group,
                    superset_rest=superset_rest,
                    circuit_rest=circuit_rest,
                    group_id=group.id,
                )
            )
        mode = GroupedMode(tuple(groups))
    elif template.exercises:
        mode = StandardMode(
            tuple(
                _materialise_exercise(item, i, last_used)
                for i, item in enumerate(_in_template_order(template.exercises))
            )
        )
    else:
        raise InvalidInput(f"workout {template.id} has no exercises")

    session = SessionAggregate(
        workout_id=template.id,
        workout_name=template.name,
        mode=mode,
        start_date=time.time(),
        state=SessionState.ACTIVE,
        default_rest=(
            template.default_rest if template.default_rest is not None else default_rest
        ),
    )
    logging.info(
        "Started session %s from workout '%s' with %s exercises",
        session.id,
        template.name,
        len(session.exercises),
    )
    return session
