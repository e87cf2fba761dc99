from gymsession.models import ExerciseRecord, SetRecord


def make_exercise(catalog_id, sets=3, weight=50.0, reps=8, order_index=0, **kwargs):
    """Build an exercise with ``sets`` identical, incomplete sets."""
    return ExerciseRecord(
        catalog_exercise_id=catalog_id,
        name=catalog_id.replace("_", " ").title(),
        sets=tuple(
            SetRecord(weight=weight, reps=reps, order_index=i) for i in range(sets)
        ),
        order_index=order_index,
        **kwargs,
    )
