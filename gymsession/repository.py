"""SQLite storage for sessions and the exercise catalog.

Child rows carry their ``order_index`` (``group_index`` for groups) and every
read sorts by it.  Storage order is never relied upon.

The ``open_slot`` column is ``1`` while a session is active or paused and
``NULL`` once it is completed.  Its ``UNIQUE`` constraint keeps at most one
open session in the database even if two writers race past the
read-before-write check in :meth:`SqliteSessionRepository.save`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from . import DEFAULT_DB_PATH
from .errors import (
    ActiveSessionAlreadyExists,
    InvalidInput,
    PersistenceFailed,
    SessionNotFound,
)
from .models import (
    CatalogExercise,
    ExerciseGroup,
    ExerciseRecord,
    GroupedMode,
    SessionAggregate,
    SessionState,
    SetRecord,
    StandardMode,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS session_sessions (
    id TEXT PRIMARY KEY,
    workout_id TEXT NOT NULL,
    workout_name TEXT NOT NULL DEFAULT '',
    state TEXT NOT NULL CHECK (state IN ('active', 'paused', 'completed')),
    mode TEXT NOT NULL CHECK (mode IN ('standard', 'grouped')),
    start_date REAL NOT NULL,
    end_date REAL,
    default_rest REAL NOT NULL,
    external_session_ref TEXT,
    open_slot INTEGER UNIQUE
);

CREATE TABLE IF NOT EXISTS session_groups (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL
        REFERENCES session_sessions(id) ON DELETE CASCADE,
    group_index INTEGER NOT NULL,
    current_round INTEGER NOT NULL,
    total_rounds INTEGER NOT NULL,
    rest_after_group REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS session_exercises (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL
        REFERENCES session_sessions(id) ON DELETE CASCADE,
    group_id TEXT REFERENCES session_groups(id) ON DELETE CASCADE,
    catalog_exercise_id TEXT NOT NULL,
    name TEXT NOT NULL DEFAULT '',
    notes TEXT,
    rest_time_to_next REAL,
    per_set_rest_times_json TEXT,
    order_index INTEGER NOT NULL,
    is_finished INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS session_sets (
    id TEXT PRIMARY KEY,
    exercise_id TEXT NOT NULL
        REFERENCES session_exercises(id) ON DELETE CASCADE,
    weight REAL NOT NULL,
    reps INTEGER NOT NULL,
    completed INTEGER NOT NULL DEFAULT 0,
    completed_at REAL,
    order_index INTEGER NOT NULL,
    is_warmup INTEGER NOT NULL DEFAULT 0,
    rest_time_override REAL
);

CREATE TABLE IF NOT EXISTS catalog_exercises (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    last_used_weight REAL,
    last_used_reps INTEGER,
    last_used_at REAL
);
"""


@contextmanager
def _transaction(db_path: Path, action: str) -> Iterator[sqlite3.Cursor]:
    """Yield a cursor inside a transaction; wrap SQLite errors.

    The transaction commits when the block exits cleanly and rolls back
    otherwise.
    """

    try:
        conn = sqlite3.connect(str(db_path))
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn.cursor()
        finally:
            conn.close()
    except sqlite3.Error as exc:
        logging.exception("Database error while trying to %s (%s)", action, db_path)
        raise PersistenceFailed(exc) from exc


def init_db(db_path: Path) -> None:
    """Create the tables in ``db_path`` if they do not exist yet."""

    db_path = Path(db_path)
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logging.exception("Cannot create database directory %s", db_path.parent)
        raise PersistenceFailed(exc) from exc
    with _transaction(db_path, "initialise the schema") as cur:
        cur.executescript(SCHEMA)


class SqliteSessionRepository:
    """Stores session aggregates as rows in a SQLite database."""

    def __init__(self, db_path: Path = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        init_db(self.db_path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch(self, session_id: str) -> SessionAggregate | None:
        with _transaction(self.db_path, "fetch a session") as cur:
            return self._load(cur, session_id)

    def fetch_active(self) -> SessionAggregate | None:
        """Return the active or paused session, if any."""

        with _transaction(self.db_path, "fetch the active session") as cur:
            session_id = self._open_session_id(cur)
            if session_id is None:
                return None
            return self._load(cur, session_id)

    @staticmethod
    def _open_session_id(cur: sqlite3.Cursor) -> str | None:
        cur.execute(
            "SELECT id FROM session_sessions WHERE state IN ('active', 'paused') "
            "ORDER BY start_date DESC LIMIT 1"
        )
        row = cur.fetchone()
        return row[0] if row else None

    def _load(self, cur: sqlite3.Cursor, session_id: str) -> SessionAggregate | None:
        cur.execute(
            """
            SELECT id, workout_id, workout_name, state, mode, start_date,
                   end_date, default_rest, external_session_ref
              FROM session_sessions
             WHERE id = ?
            """,
            (session_id,),
        )
        row = cur.fetchone()
        if row is None:
            return None
        (
            sid,
            workout_id,
            workout_name,
            state,
            mode_name,
            start_date,
            end_date,
            default_rest,
            external_ref,
        ) = row

        exercises_by_group: dict[str | None, list[ExerciseRecord]] = {}
        for group_id, exercise in self._load_exercises(cur, sid):
            exercises_by_group.setdefault(group_id, []).append(exercise)

        if mode_name == "grouped":
            cur.execute(
                """
                SELECT id, group_index, current_round, total_rounds, rest_after_group
                  FROM session_groups
                 WHERE session_id = ?
                 ORDER BY group_index
                """,
                (sid,),
            )
            groups = [
                ExerciseGroup(
                    id=gid,
                    group_index=group_index,
                    current_round=current_round,
                    total_rounds=total_rounds,
                    rest_after_group=rest,
                    exercises=tuple(exercises_by_group.get(gid, [])),
                )
                for gid, group_index, current_round, total_rounds, rest in cur.fetchall()
            ]
            mode = GroupedMode(tuple(groups))
        else:
            mode = StandardMode(tuple(exercises_by_group.get(None, [])))

        return SessionAggregate(
            id=sid,
            workout_id=workout_id,
            workout_name=workout_name,
            state=SessionState(state),
            start_date=start_date,
            end_date=end_date,
            default_rest=default_rest,
            external_session_ref=external_ref,
            mode=mode,
        )

    @staticmethod
    def _load_exercises(
        cur: sqlite3.Cursor, session_id: str
    ) -> list[tuple[str | None, ExerciseRecord]]:
        cur.execute(
            """
            SELECT s.id, s.exercise_id, s.weight, s.reps, s.completed,
                   s.completed_at, s.order_index, s.is_warmup, s.rest_time_override
              FROM session_sets s
              JOIN session_exercises e ON s.exercise_id = e.id
             WHERE e.session_id = ?
             ORDER BY s.order_index
            """,
            (session_id,),
        )
        sets_by_exercise: dict[str, list[SetRecord]] = {}
        for (
            set_id,
            exercise_id,
            weight,
            reps,
            completed,
            completed_at,
            order_index,
            is_warmup,
            rest_override,
        ) in cur.fetchall():
            sets_by_exercise.setdefault(exercise_id, []).append(
                SetRecord(
                    id=set_id,
                    weight=weight,
                    reps=reps,
                    completed=bool(completed),
                    completed_at=completed_at,
                    order_index=order_index,
                    is_warmup=bool(is_warmup),
                    rest_time_override=rest_override,
                )
            )

        cur.execute(
            """
            SELECT id, group_id, catalog_exercise_id, name, notes,
                   rest_time_to_next, per_set_rest_times_json, order_index, is_finished
              FROM session_exercises
             WHERE session_id = ?
             ORDER BY order_index
            """,
            (session_id,),
        )
        result = []
        for (
            ex_id,
            group_id,
            catalog_id,
            name,
            notes,
            rest,
            per_set_json,
            order_index,
            is_finished,
        ) in cur.fetchall():
            result.append(
                (
                    group_id,
                    ExerciseRecord(
                        id=ex_id,
                        catalog_exercise_id=catalog_id,
                        name=name,
                        notes=notes,
                        rest_time_to_next=rest,
                        per_set_rest_times=(
                            json.loads(per_set_json) if per_set_json else None
                        ),
                        order_index=order_index,
                        is_finished=bool(is_finished),
                        sets=tuple(sets_by_exercise.get(ex_id, [])),
                    ),
                )
            )
        return result

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, session: SessionAggregate) -> None:
        """Insert a new session.

        Raises :class:`ActiveSessionAlreadyExists` if ``session`` is open and
        another open session is stored.
        """

        with _transaction(self.db_path, "save a session") as cur:
            cur.execute("SELECT 1 FROM session_sessions WHERE id = ?", (session.id,))
            if cur.fetchone():
                raise InvalidInput(f"session {session.id} is already stored")
            if session.is_open:
                existing = self._open_session_id(cur)
                if existing is not None:
                    raise ActiveSessionAlreadyExists(existing)
            self._insert_session(cur, session)
            self._insert_children(cur, session)

    def update(self, session: SessionAggregate) -> None:
        """Replace the stored copy of ``session`` with this value."""

        with _transaction(self.db_path, "update a session") as cur:
            try:
                cur.execute(
                    """
                    UPDATE session_sessions
                       SET workout_id = ?, workout_name = ?, state = ?, mode = ?,
                           start_date = ?, end_date = ?, default_rest = ?,
                           external_session_ref = ?, open_slot = ?
                     WHERE id = ?
                    """,
                    (*self._session_values(session), session.id),
                )
            except sqlite3.IntegrityError as exc:
                raise ActiveSessionAlreadyExists(self._open_session_id(cur)) from exc
            if cur.rowcount == 0:
                raise SessionNotFound(session.id)
            cur.execute("DELETE FROM session_exercises WHERE session_id = ?", (session.id,))
            cur.execute("DELETE FROM session_groups WHERE session_id = ?", (session.id,))
            self._insert_children(cur, session)

    def delete(self, session_id: str) -> None:
        with _transaction(self.db_path, "delete a session") as cur:
            cur.execute("DELETE FROM session_sessions WHERE id = ?", (session_id,))
            if cur.rowcount == 0:
                raise SessionNotFound(session_id)

    @staticmethod
    def _session_values(session: SessionAggregate) -> tuple:
        return (
            session.workout_id,
            session.workout_name,
            session.state.value,
            "grouped" if session.is_grouped else "standard",
            session.start_date,
            session.end_date,
            session.default_rest,
            session.external_session_ref,
            1 if session.is_open else None,
        )

    def _insert_session(self, cur: sqlite3.Cursor, session: SessionAggregate) -> None:
        try:
            cur.execute(
                """
                INSERT INTO session_sessions
                    (id, workout_id, workout_name, state, mode, start_date,
                     end_date, default_rest, external_session_ref, open_slot)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (session.id, *self._session_values(session)),
            )
        except sqlite3.IntegrityError as exc:
            raise ActiveSessionAlreadyExists(self._open_session_id(cur)) from exc

    def _insert_children(self, cur: sqlite3.Cursor, session: SessionAggregate) -> None:
        if isinstance(session.mode, GroupedMode):
            for group in session.mode.groups:
                cur.execute(
                    """
                    INSERT INTO session_groups
                        (id, session_id, group_index, current_round,
                         total_rounds, rest_after_group)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        group.id,
                        session.id,
                        group.group_index,
                        group.current_round,
                        group.total_rounds,
                        group.rest_after_group,
                    ),
                )
                for exercise in group.exercises:
                    self._insert_exercise(cur, session.id, group.id, exercise)
        else:
            for exercise in session.mode.exercises:
                self._insert_exercise(cur, session.id, None, exercise)

    @staticmethod
    def _insert_exercise(
        cur: sqlite3.Cursor,
        session_id: str,
        group_id: str | None,
        exercise: ExerciseRecord,
    ) -> None:
        cur.execute(
            """
            INSERT INTO session_exercises
                (id, session_id, group_id, catalog_exercise_id, name, notes,
                 rest_time_to_next, per_set_rest_times_json, order_index, is_finished)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                exercise.id,
                session_id,
                group_id,
                exercise.catalog_exercise_id,
                exercise.name,
                exercise.notes,
                exercise.rest_time_to_next,
                json.dumps(list(exercise.per_set_rest_times))
                if exercise.per_set_rest_times is not None
                else None,
                exercise.order_index,
                int(exercise.is_finished),
            ),
        )
        cur.executemany(
            """
            INSERT INTO session_sets
                (id, exercise_id, weight, reps, completed, completed_at,
                 order_index, is_warmup, rest_time_override)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    s.id,
                    exercise.id,
                    s.weight,
                    s.reps,
                    int(s.completed),
                    s.completed_at,
                    s.order_index,
                    int(s.is_warmup),
                    s.rest_time_override,
                )
                for s in exercise.sets
            ],
        )


class SqliteExerciseCatalog:
    """The "last used" part of the exercise catalog.

    Writes are last-write-wins; no locking is attempted.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH) -> None:
        self.db_path = Path(db_path)
        init_db(self.db_path)

    def fetch(self, exercise_id: str) -> CatalogExercise | None:
        with _transaction(self.db_path, "fetch a catalog exercise") as cur:
            cur.execute(
                """
                SELECT id, name, last_used_weight, last_used_reps, last_used_at
                  FROM catalog_exercises
                 WHERE id = ?
                """,
                (exercise_id,),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return CatalogExercise(*row)

    def add(self, exercise_id: str, name: str = "") -> None:
        with _transaction(self.db_path, "add a catalog exercise") as cur:
            cur.execute(
                """
                INSERT INTO catalog_exercises (id, name) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name
                """,
                (exercise_id, name),
            )

    def update_last_used(
        self, exercise_id: str, weight: float, reps: int, at: float
    ) -> None:
        with _transaction(self.db_path, "update last used values") as cur:
            cur.execute(
                """
                INSERT INTO catalog_exercises
                    (id, last_used_weight, last_used_reps, last_used_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    last_used_weight = excluded.last_used_weight,
                    last_used_reps = excluded.last_used_reps,
                    last_used_at = excluded.last_used_at
                """,
                (exercise_id, weight, reps, at),
            )
