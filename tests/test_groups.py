from dataclasses import replace

import pytest

from gymsession import engine
from gymsession.errors import InvalidInput, RoundNotReady
from gymsession.models import ExerciseGroup
from gymsession.groups import (
    advance_to_next_round,
    build_group,
    can_advance_to_next_round,
    default_group_rest,
    overall_progress,
    round_progress,
)
from utils import make_exercise


def _ids(session):
    group = session.exercise_groups[0]
    curl, crusher = group.exercises
    return curl, crusher


def test_superset_round_flow(superset_session, clock):
    session = superset_session
    curl, crusher = _ids(session)

    session = engine.complete_group_set(session, 0, curl.id, curl.sets[0].id)
    group = session.exercise_groups[0]
    assert not can_advance_to_next_round(group)
    assert round_progress(group) == 0.5
    with pytest.raises(RoundNotReady):
        engine.advance_round(session, 0)

    session = engine.complete_group_set(session, 0, crusher.id, crusher.sets[0].id)
    group = session.exercise_groups[0]
    assert can_advance_to_next_round(group)
    # completing a set never advances the round by itself
    assert group.current_round == 1

    session = engine.advance_round(session, 0)
    group = session.exercise_groups[0]
    assert group.current_round == 2
    assert round_progress(group) == 0.0
    assert overall_progress(group) == pytest.approx(1 / 3)


def test_advance_past_last_round_completes_group(superset_session, clock):
    session = superset_session
    curl, crusher = _ids(session)
    for position in range(3):
        session = engine.complete_group_set(session, 0, curl.id, curl.sets[position].id)
        session = engine.complete_group_set(
            session, 0, crusher.id, crusher.sets[position].id
        )
        session = engine.advance_round(session, 0)

    group = session.exercise_groups[0]
    assert group.current_round == 4
    assert group.is_completed
    assert overall_progress(group) == 1.0
    with pytest.raises(RoundNotReady):
        advance_to_next_round(group)


def test_progress_stays_in_bounds():
    group = build_group([make_exercise("a"), make_exercise("b", order_index=1)])
    assert overall_progress(group) == 0.0
    assert 0.0 <= round_progress(group) <= 1.0


@pytest.mark.parametrize("current_round", [1, 2, 3, 4])
def test_progress_for_every_round(current_round):
    # earlier rounds done, plus the first exercise of the current round
    exercises = []
    for position, name in enumerate(["a", "b"]):
        exercise = make_exercise(name, order_index=position)
        sets = tuple(
            replace(s, completed=True, completed_at=1.0)
            if s.order_index < current_round - 1
            or (position == 0 and s.order_index == current_round - 1)
            else s
            for s in exercise.sets
        )
        exercises.append(replace(exercise, sets=sets))
    group = ExerciseGroup(
        exercises=tuple(exercises), total_rounds=3, current_round=current_round
    )

    assert 0.0 <= round_progress(group) <= 1.0
    assert 0.0 <= overall_progress(group) <= 1.0
    if current_round <= 3:
        assert round_progress(group) == 0.5
        assert overall_progress(group) == pytest.approx((current_round - 0.5) / 3)
        assert not can_advance_to_next_round(group)
    else:
        assert group.is_completed
        assert round_progress(group) == 0.0
        assert overall_progress(group) == 1.0


def test_build_group_defaults_rest_by_size():
    pair = build_group(
        [make_exercise("a"), make_exercise("b", order_index=1)],
        superset_rest=75,
        circuit_rest=200,
    )
    assert pair.total_rounds == 3
    assert pair.rest_after_group == 75

    circuit = build_group(
        [make_exercise(name, order_index=i) for i, name in enumerate("abc")],
        superset_rest=75,
        circuit_rest=200,
    )
    assert circuit.rest_after_group == 200
    assert default_group_rest(2) == 90
    assert default_group_rest(4) == 180


def test_build_group_rejects_bad_shapes():
    with pytest.raises(InvalidInput):
        build_group([])
    with pytest.raises(InvalidInput):
        build_group([make_exercise("a")])
    with pytest.raises(InvalidInput):
        build_group([make_exercise("a", sets=3), make_exercise("b", sets=2, order_index=1)])
    with pytest.raises(InvalidInput):
        build_group(
            [make_exercise("a"), make_exercise("b", order_index=1)], total_rounds=4
        )
