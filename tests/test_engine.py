from dataclasses import replace

import pytest

from gymsession import engine
from gymsession.errors import (
    ExerciseNotFound,
    GroupIndexOutOfRange,
    InvalidInput,
    InvalidTransition,
    SetNotFound,
)
from gymsession.models import SessionState, SetRecord


def _bench(session):
    return session.exercises[0]


def test_complete_toggle_is_idempotent_pair(standard_session, clock):
    bench = _bench(standard_session)
    target = bench.sets[0].id

    done = engine.complete_or_uncomplete_set(standard_session, bench.id, target)
    done_set = _bench(done).sets[0]
    assert done_set.completed
    assert done_set.completed_at == clock.now

    undone = engine.complete_or_uncomplete_set(done, bench.id, target)
    assert undone == standard_session
    # the original value is never touched
    assert not _bench(standard_session).sets[0].completed


def test_exercise_finishes_and_unfinishes(standard_session, clock):
    session = standard_session
    bench = _bench(session)
    for set_record in bench.sets:
        session = engine.complete_or_uncomplete_set(session, bench.id, set_record.id)
    assert _bench(session).is_finished

    session = engine.complete_or_uncomplete_set(session, bench.id, bench.sets[1].id)
    assert not _bench(session).is_finished
    assert not session.exercises[1].is_finished


def test_unknown_ids(standard_session):
    bench = _bench(standard_session)
    with pytest.raises(ExerciseNotFound):
        engine.complete_or_uncomplete_set(standard_session, "nope", bench.sets[0].id)
    with pytest.raises(SetNotFound):
        engine.complete_or_uncomplete_set(standard_session, bench.id, "nope")
    with pytest.raises(GroupIndexOutOfRange):
        engine.complete_group_set(standard_session, 0, bench.id, bench.sets[0].id)


def test_group_set_addressing(superset_session, clock):
    curl, crusher = superset_session.exercise_groups[0].exercises
    with pytest.raises(GroupIndexOutOfRange):
        engine.complete_group_set(superset_session, 1, curl.id, curl.sets[0].id)
    with pytest.raises(ExerciseNotFound):
        engine.complete_group_set(superset_session, 0, "nope", curl.sets[0].id)
    session = engine.complete_or_uncomplete_set(superset_session, crusher.id, crusher.sets[0].id)
    assert session.exercise_groups[0].exercises[1].sets[0].completed


def test_update_set_validation_leaves_session_alone(standard_session):
    bench = _bench(standard_session)
    with pytest.raises(InvalidInput):
        engine.update_set(standard_session, bench.id, bench.sets[0].id, weight=-5)
    with pytest.raises(InvalidInput):
        engine.update_set(standard_session, bench.id, bench.sets[0].id, reps=0)
    assert _bench(standard_session).sets[0].weight == 60.0


def test_update_set_keeps_completion(standard_session, clock):
    bench = _bench(standard_session)
    session = engine.complete_or_uncomplete_set(standard_session, bench.id, bench.sets[0].id)
    session = engine.update_set(session, bench.id, bench.sets[0].id, weight=0, reps=12)
    edited = _bench(session).sets[0]
    assert (edited.weight, edited.reps, edited.completed) == (0, 12, True)

    only_reps = engine.update_set(session, bench.id, bench.sets[1].id, reps=6)
    assert _bench(only_reps).sets[1].weight == 60.0
    assert _bench(only_reps).sets[1].reps == 6


def test_update_group_set(superset_session):
    curl = superset_session.exercise_groups[0].exercises[0]
    session = engine.update_group_set(superset_session, 0, curl.id, curl.sets[2].id, weight=32.5)
    assert session.exercise_groups[0].exercises[0].sets[2].weight == 32.5


def test_update_all_sets_skips_completed(standard_session, clock):
    bench = _bench(standard_session)
    session = engine.complete_or_uncomplete_set(standard_session, bench.id, bench.sets[0].id)
    session = engine.update_all_sets(session, bench.id, weight=70)
    assert [s.weight for s in _bench(session).sets] == [60.0, 70, 70]


def test_add_and_remove_sets(standard_session, clock):
    row = standard_session.exercises[1]
    session = standard_session
    for set_record in row.sets:
        session = engine.complete_or_uncomplete_set(session, row.id, set_record.id)
    assert session.exercises[1].is_finished

    session = engine.add_set(session, row.id)
    row_now = session.exercises[1]
    assert len(row_now.sets) == 3
    assert row_now.sets[-1].order_index == 2
    assert (row_now.sets[-1].weight, row_now.sets[-1].reps) == (50.0, 10)
    assert not row_now.is_finished

    session = engine.remove_set(session, row.id, row_now.sets[0].id)
    row_now = session.exercises[1]
    assert [s.order_index for s in row_now.sets] == [0, 1]
    assert not row_now.is_finished

    session = engine.remove_set(session, row.id, row_now.sets[1].id)
    assert session.exercises[1].is_finished
    with pytest.raises(InvalidInput):
        engine.remove_set(session, row.id, session.exercises[1].sets[0].id)


def test_grouped_sets_cannot_be_added(superset_session):
    curl = superset_session.exercise_groups[0].exercises[0]
    with pytest.raises(InvalidInput):
        engine.add_set(superset_session, curl.id)
    with pytest.raises(InvalidInput):
        engine.remove_set(superset_session, curl.id, curl.sets[0].id)


def test_notes_are_trimmed(standard_session):
    bench = _bench(standard_session)
    session = engine.update_exercise_notes(standard_session, bench.id, "  " + "a" * 250)
    assert _bench(session).notes == "a" * 200
    session = engine.update_exercise_notes(session, bench.id, "   ")
    assert _bench(session).notes is None


def test_move_exercise(standard_session):
    session = engine.move_exercise(standard_session, 0, 1)
    assert [ex.catalog_exercise_id for ex in session.exercises] == ["barbell_row", "bench_press"]
    assert [ex.order_index for ex in session.exercises] == [0, 1]
    with pytest.raises(InvalidInput):
        engine.move_exercise(standard_session, 0, 2)


def test_move_refused_for_groups(superset_session):
    with pytest.raises(InvalidInput):
        engine.move_exercise(superset_session, 0, 1)
    with pytest.raises(InvalidInput):
        engine.add_exercise(superset_session, "plank")


def test_add_exercise(standard_session):
    session = engine.add_exercise(
        standard_session, "plank", name="Plank", weight=0, reps=1, set_count=2, rest_time=45
    )
    added = session.exercises[-1]
    assert added.order_index == 2
    assert added.rest_time_to_next == 45
    assert len(added.sets) == 2
    with pytest.raises(InvalidInput):
        engine.add_exercise(standard_session, "plank", set_count=0)


def test_lifecycle(standard_session, clock):
    paused = engine.pause_session(standard_session)
    assert paused.state is SessionState.PAUSED
    with pytest.raises(InvalidTransition):
        engine.pause_session(paused)
    with pytest.raises(InvalidTransition):
        engine.resume_session(standard_session)

    ended = engine.end_session(engine.resume_session(paused))
    assert ended.state is SessionState.COMPLETED
    assert ended.end_date == clock.now
    with pytest.raises(InvalidTransition):
        engine.end_session(ended)
    with pytest.raises(InvalidTransition):
        engine.resume_session(ended)

    bench = _bench(ended)
    with pytest.raises(InvalidTransition):
        engine.complete_or_uncomplete_set(ended, bench.id, bench.sets[0].id)


def test_paused_session_still_accepts_edits(standard_session, clock):
    paused = engine.pause_session(standard_session)
    bench = _bench(paused)
    session = engine.complete_or_uncomplete_set(paused, bench.id, bench.sets[0].id)
    assert session.state is SessionState.PAUSED


def test_attach_external_ref(standard_session):
    session = engine.attach_external_ref(standard_session, "strava-123")
    assert session.external_session_ref == "strava-123"


def test_last_used_prefers_heaviest_first_working_set(standard_session):
    bench = _bench(standard_session)
    sets = (
        SetRecord(weight=100, reps=3, order_index=0, is_warmup=True, completed=True, completed_at=1.0),
        SetRecord(weight=80, reps=5, order_index=1, completed=True, completed_at=2.0),
        SetRecord(weight=80, reps=4, order_index=2, completed=True, completed_at=3.0),
        SetRecord(weight=90, reps=2, order_index=3),
    )
    bench = replace(bench, sets=sets)
    value = engine.last_used_for_exercise(bench)
    assert (value.weight, value.reps, value.completed_at) == (80, 5, 2.0)
    assert value.catalog_exercise_id == "bench_press"


def test_last_used_values_skips_untouched_exercises(standard_session, clock):
    bench = _bench(standard_session)
    session = engine.complete_or_uncomplete_set(standard_session, bench.id, bench.sets[0].id)
    values = engine.last_used_values(session)
    assert [v.catalog_exercise_id for v in values] == ["bench_press"]
