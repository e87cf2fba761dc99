"""Keeps the caller's view of the session in step with storage.

Every mutation follows the same sequence: the pure engine computes the new
aggregate (typed failures leave :attr:`SessionController.view` untouched),
the view is set to it optimistically, the repository persists it, and the
view is finally replaced by the stored copy.  When persisting fails the
optimistic copy is thrown away in favour of whatever storage holds and the
:class:`~gymsession.errors.PersistenceFailed` is re-raised.

Catalog "last used" reads and writes are best-effort.  Any failure there is
logged and never undoes the session change that triggered it.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from . import DEFAULT_CIRCUIT_REST, DEFAULT_REST_DURATION, DEFAULT_SUPERSET_REST
from . import engine
from .errors import (
    ActiveSessionAlreadyExists,
    InvalidTransition,
    PersistenceFailed,
    SessionNotFound,
    WorkoutNotFound,
)
from .models import CatalogExercise, LastUsed, SessionAggregate
from .rest import SetFeedback, set_feedback
from .templates import WorkoutTemplate, start_session


class SessionRepository(Protocol):
    def fetch(self, session_id: str) -> SessionAggregate | None: ...

    def fetch_active(self) -> SessionAggregate | None: ...

    def save(self, session: SessionAggregate) -> None: ...

    def update(self, session: SessionAggregate) -> None: ...

    def delete(self, session_id: str) -> None: ...


class ExerciseCatalog(Protocol):
    def fetch(self, exercise_id: str) -> CatalogExercise | None: ...

    def update_last_used(
        self, exercise_id: str, weight: float, reps: int, at: float
    ) -> None: ...


class TemplateProvider(Protocol):
    def fetch(self, workout_id: str) -> WorkoutTemplate | None: ...


class SessionController:
    """Drives one session through the engine and persists every step."""

    def __init__(
        self,
        repository: SessionRepository,
        catalog: ExerciseCatalog,
        templates: TemplateProvider,
        default_rest: float = DEFAULT_REST_DURATION,
        superset_rest: float = DEFAULT_SUPERSET_REST,
        circuit_rest: float = DEFAULT_CIRCUIT_REST,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.templates = templates
        self.default_rest = default_rest
        self.superset_rest = superset_rest
        self.circuit_rest = circuit_rest
        self.view: SessionAggregate | None = None

    # ------------------------------------------------------------------
    # Loading and starting
    # ------------------------------------------------------------------

    def load(self, session_id: str | None = None) -> SessionAggregate | None:
        """Load ``session_id`` (or the open session) into the view."""

        if session_id is None:
            self.view = self.repository.fetch_active()
        else:
            session = self.repository.fetch(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            self.view = session
        return self.view

    def start(self, workout_id: str) -> SessionAggregate:
        existing = self.repository.fetch_active()
        if existing is not None:
            raise ActiveSessionAlreadyExists(existing.id)
        template = self.templates.fetch(workout_id)
        if template is None:
            raise WorkoutNotFound(workout_id)

        session = start_session(
            template,
            self._catalog_entries(template),
            default_rest=self.default_rest,
            superset_rest=self.superset_rest,
            circuit_rest=self.circuit_rest,
        )
        self.repository.save(session)
        self.view = self.repository.fetch(session.id) or session
        return self.view

    def _catalog_entries(self, template: WorkoutTemplate) -> dict[str, CatalogExercise]:
        items = list(template.exercises)
        for group in template.groups:
            items.extend(group.exercises)
        entries: dict[str, CatalogExercise] = {}
        for item in items:
            try:
                entry = self.catalog.fetch(item.exercise_id)
            except Exception:
                logging.exception(
                    "Could not read last used values for %s", item.exercise_id
                )
                continue
            if entry is not None:
                entries[item.exercise_id] = entry
        return entries

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------

    def _current(self) -> SessionAggregate:
        if self.view is None:
            raise SessionNotFound("no session loaded")
        return self.view

    def _apply(
        self, mutate: Callable[[SessionAggregate], SessionAggregate]
    ) -> SessionAggregate:
        previous = self._current()
        updated = mutate(previous)
        self.view = updated
        try:
            self.repository.update(updated)
        except PersistenceFailed:
            self.view = self._refetch(previous)
            raise
        self.view = self.repository.fetch(updated.id) or updated
        return self.view

    def _refetch(self, fallback: SessionAggregate) -> SessionAggregate:
        try:
            stored = self.repository.fetch(fallback.id)
        except PersistenceFailed:
            logging.exception("Re-fetch of session %s failed", fallback.id)
            return fallback
        return stored if stored is not None else fallback

    def _remember(self, values: list[LastUsed], at: float | None = None) -> None:
        for value in values:
            try:
                self.catalog.update_last_used(
                    value.catalog_exercise_id,
                    value.weight,
                    value.reps,
                    value.completed_at if at is None else at,
                )
            except Exception:
                logging.exception(
                    "Could not update last used values for %s",
                    value.catalog_exercise_id,
                )

    # ------------------------------------------------------------------
    # Set operations
    # ------------------------------------------------------------------

    def complete_set(self, exercise_id: str, set_id: str) -> SessionAggregate:
        return self._apply(
            lambda s: engine.complete_or_uncomplete_set(s, exercise_id, set_id)
        )

    def complete_group_set(
        self, group_index: int, exercise_id: str, set_id: str
    ) -> SessionAggregate:
        return self._apply(
            lambda s: engine.complete_group_set(s, group_index, exercise_id, set_id)
        )

    def update_set(
        self,
        exercise_id: str,
        set_id: str,
        weight: float | None = None,
        reps: int | None = None,
    ) -> SessionAggregate:
        session = self._apply(
            lambda s: engine.update_set(s, exercise_id, set_id, weight, reps)
        )
        self._remember_set(session, exercise_id, set_id)
        return session

    def update_group_set(
        self,
        group_index: int,
        exercise_id: str,
        set_id: str,
        weight: float | None = None,
        reps: int | None = None,
    ) -> SessionAggregate:
        session = self._apply(
            lambda s: engine.update_group_set(
                s, group_index, exercise_id, set_id, weight, reps
            )
        )
        self._remember_set(session, exercise_id, set_id)
        return session

    def _remember_set(
        self, session: SessionAggregate, exercise_id: str, set_id: str
    ) -> None:
        _, exercise = session.locate(exercise_id)
        position = exercise.set_position(set_id)
        if position is None:
            return
        set_record = exercise.sets[position]
        if set_record.is_warmup:
            return
        self._remember(
            [
                LastUsed(
                    exercise.catalog_exercise_id, set_record.weight, set_record.reps
                )
            ],
            at=time.time(),
        )

    def update_all_sets(
        self, exercise_id: str, weight: float | None = None, reps: int | None = None
    ) -> SessionAggregate:
        session = self._apply(
            lambda s: engine.update_all_sets(s, exercise_id, weight, reps)
        )
        _, exercise = session.locate(exercise_id)
        working = [s for s in exercise.sets if not s.is_warmup]
        if working:
            self._remember_set(session, exercise_id, working[0].id)
        return session

    def add_set(
        self, exercise_id: str, weight: float | None = None, reps: int | None = None
    ) -> SessionAggregate:
        return self._apply(lambda s: engine.add_set(s, exercise_id, weight, reps))

    def remove_set(self, exercise_id: str, set_id: str) -> SessionAggregate:
        return self._apply(lambda s: engine.remove_set(s, exercise_id, set_id))

    def feedback(self, exercise_id: str, set_id: str) -> SetFeedback:
        """Rest and milestone information for the latest toggle of ``set_id``."""

        return set_feedback(self._current(), exercise_id, set_id)

    # ------------------------------------------------------------------
    # Exercise operations
    # ------------------------------------------------------------------

    def update_notes(self, exercise_id: str, notes: str | None) -> SessionAggregate:
        return self._apply(
            lambda s: engine.update_exercise_notes(s, exercise_id, notes)
        )

    def move_exercise(self, from_position: int, to_position: int) -> SessionAggregate:
        return self._apply(
            lambda s: engine.move_exercise(s, from_position, to_position)
        )

    def add_exercise(self, catalog_exercise_id: str, **kwargs) -> SessionAggregate:
        entry = None
        try:
            entry = self.catalog.fetch(catalog_exercise_id)
        except Exception:
            logging.exception(
                "Could not read last used values for %s", catalog_exercise_id
            )
        if entry is not None:
            if "weight" not in kwargs and entry.last_used_weight is not None:
                kwargs["weight"] = entry.last_used_weight
            if "reps" not in kwargs and entry.last_used_reps is not None:
                kwargs["reps"] = entry.last_used_reps
            if not kwargs.get("name"):
                kwargs["name"] = entry.name
        return self._apply(
            lambda s: engine.add_exercise(s, catalog_exercise_id, **kwargs)
        )

    def advance_round(self, group_index: int) -> SessionAggregate:
        return self._apply(lambda s: engine.advance_round(s, group_index))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def pause(self) -> SessionAggregate:
        return self._apply(engine.pause_session)

    def resume(self) -> SessionAggregate:
        return self._apply(engine.resume_session)

    def attach_external_ref(self, ref: str | None) -> SessionAggregate:
        return self._apply(lambda s: engine.attach_external_ref(s, ref))

    def end(self) -> SessionAggregate:
        """Complete the session and remember its last-used values."""

        session = self._apply(engine.end_session)
        self._remember(engine.last_used_values(session), at=session.end_date)
        return session

    def cancel(self) -> None:
        """Delete the open session without remembering anything."""

        session = self._current()
        if not session.is_open:
            raise InvalidTransition(session.state.value, "cancel")
        self.repository.delete(session.id)
        logging.info("Session %s cancelled", session.id)
        self.view = None


__all__ = [
    "SessionController",
    "SessionRepository",
    "ExerciseCatalog",
    "TemplateProvider",
]
