from dataclasses import replace

import pytest

from gymsession import engine
from gymsession.errors import SetNotFound
from gymsession.rest import resolve_rest_time, set_feedback
from gymsession.models import SetRecord
from utils import make_exercise


def test_set_override_wins():
    exercise = make_exercise("squat", rest_time_to_next=150, per_set_rest_times=(60, 70, 80))
    first = replace(exercise.sets[0], rest_time_override=30)
    exercise = replace(exercise, sets=(first,) + exercise.sets[1:])
    assert resolve_rest_time(exercise.sets[0], exercise, workout_default=120) == 30
    assert resolve_rest_time(exercise.sets[1], exercise, workout_default=120) == 70


def test_exercise_rest_then_workout_default():
    exercise = make_exercise("squat", rest_time_to_next=150)
    assert resolve_rest_time(exercise.sets[0], exercise, workout_default=120) == 150
    plain = make_exercise("squat")
    assert resolve_rest_time(plain.sets[0], plain, workout_default=120) == 120


def test_group_rest_only_when_round_closes(superset_session, clock):
    session = superset_session
    group = session.exercise_groups[0]
    curl, crusher = group.exercises

    session = engine.complete_group_set(session, 0, curl.id, curl.sets[0].id)
    feedback = set_feedback(session, curl.id, curl.sets[0].id, workout_default=120)
    assert not feedback.round_completed
    assert feedback.rest_seconds == 120

    session = engine.complete_group_set(session, 0, crusher.id, crusher.sets[0].id)
    feedback = set_feedback(session, crusher.id, crusher.sets[0].id)
    assert feedback.round_completed
    assert not feedback.group_completed
    assert feedback.rest_seconds == 90


def test_group_completed_on_final_round(superset_session, clock):
    session = superset_session
    curl, crusher = session.exercise_groups[0].exercises
    for position in range(3):
        session = engine.complete_group_set(session, 0, curl.id, curl.sets[position].id)
        session = engine.complete_group_set(
            session, 0, crusher.id, crusher.sets[position].id
        )
        if position < 2:
            session = engine.advance_round(session, 0)

    feedback = set_feedback(session, crusher.id, crusher.sets[2].id)
    assert feedback.round_completed
    assert feedback.group_completed
    assert feedback.exercise_finished


def test_unknown_set_is_rejected():
    exercise = make_exercise("squat")
    with pytest.raises(SetNotFound):
        resolve_rest_time(SetRecord(weight=1, reps=1), exercise)
