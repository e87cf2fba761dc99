import json
from pathlib import Path
import sys
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from gymsession import engine
from gymsession.groups import build_group
from gymsession.models import GroupedMode, SessionAggregate, StandardMode
from utils import make_exercise


class FakeClock:
    """Stands in for ``time.time`` so completion stamps are predictable."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(engine.time, "time", fake)
    return fake


@pytest.fixture
def standard_session() -> SessionAggregate:
    """Bench press (3 sets) followed by rows (2 sets)."""
    return SessionAggregate(
        workout_id="push",
        workout_name="Push Day",
        start_date=500.0,
        mode=StandardMode(
            (
                make_exercise("bench_press", sets=3, weight=60.0, reps=8, order_index=0),
                make_exercise("barbell_row", sets=2, weight=50.0, reps=10, order_index=1),
            )
        ),
    )


@pytest.fixture
def superset_session() -> SessionAggregate:
    """One superset of curls and skull crushers, 3 rounds."""
    group = build_group(
        [
            make_exercise("barbell_curl", sets=3, weight=30.0, reps=10, order_index=0),
            make_exercise("skull_crusher", sets=3, weight=25.0, reps=10, order_index=1),
        ],
        group_index=0,
        rest_after_group=90,
    )
    return SessionAggregate(
        workout_id="arms",
        workout_name="Arms Superset",
        start_date=500.0,
        mode=GroupedMode((group,)),
    )


SAMPLE_WORKOUTS = {
    "workouts": [
        {
            "id": "push",
            "name": "Push Day",
            "default_rest": 100,
            "exercises": [
                {
                    "exercise_id": "bench_press",
                    "name": "Bench Press",
                    "sets": 3,
                    "reps": 8,
                    "weight": 60,
                    "rest": 150,
                    "warmup_sets": 1,
                    "warmup_weight": 40,
                },
                {
                    "exercise_id": "dips",
                    "name": "Dips",
                    "sets": 2,
                    "reps": 12,
                    "weight": 0,
                },
            ],
        },
        {
            "id": "arms",
            "name": "Arms Superset",
            "groups": [
                {
                    "rest_after_group": 90,
                    "exercises": [
                        {"exercise_id": "barbell_curl", "name": "Barbell Curl", "sets": 2, "reps": 10, "weight": 30},
                        {"exercise_id": "skull_crusher", "name": "Skull Crusher", "sets": 2, "reps": 10, "weight": 25},
                    ],
                }
            ],
        },
    ]
}


@pytest.fixture
def templates_file(tmp_path: Path) -> Path:
    path = tmp_path / "workouts.json"
    path.write_text(json.dumps(SAMPLE_WORKOUTS), encoding="utf-8")
    return path


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "gymsession.db"
