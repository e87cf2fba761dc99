"""
CLI entry point using Typer.

Drives the open workout session from the terminal:
- workouts: list the available workout templates
- start: begin a session from a template
- status: show the open session
- complete / update / update-all / add-set / remove-set: set level edits
- notes / move / add-exercise: exercise level edits
- advance: move a superset or circuit to its next round
- pause / resume / end / cancel: lifecycle
- link / export: external reference and JSON export

Exercises and sets are addressed by the 1-based numbers shown by ``status``.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Iterator, Optional

import typer

from . import DEFAULT_DB_PATH, DEFAULT_TEMPLATES_PATH
from . import settings as user_settings
from .controller import SessionController
from .errors import InvalidInput, RoundNotReady, SessionError
from .models import ExerciseRecord, SessionAggregate, SetRecord
from .repository import SqliteExerciseCatalog, SqliteSessionRepository
from .serialization import session_summary, session_to_dict
from .templates import JsonTemplateProvider


app = typer.Typer(
    name="gymsession",
    help="Track an active workout session: sets, supersets, circuits and rest.",
    no_args_is_help=True,
)


@dataclass
class CliState:
    controller: SessionController
    templates: JsonTemplateProvider
    sets_per_exercise: int


@contextmanager
def session_errors() -> Iterator[None]:
    """Turn engine failures into a message and an exit code."""
    try:
        yield
    except RoundNotReady as exc:
        # Not an error, the user just has sets left in this round
        typer.echo(f"{exc}. Finish the round first.")
        raise typer.Exit(0)
    except SessionError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(1)


@app.callback()
def main_callback(
    ctx: typer.Context,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the SQLite session database"),
    ] = DEFAULT_DB_PATH,
    templates: Annotated[
        Path,
        typer.Option("--templates", "-t", help="Path to the workout templates JSON file"),
    ] = DEFAULT_TEMPLATES_PATH,
    settings_path: Annotated[
        Path,
        typer.Option("--settings", help="Path to the settings JSON file"),
    ] = user_settings.SETTINGS_PATH,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log engine activity to stderr"),
    ] = False,
) -> None:
    """
    Workout session tracker.
    """
    level = "INFO" if verbose else str(user_settings.get_value("log_level", settings_path))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(message)s",
    )

    def setting(key: str, fallback: int) -> int:
        value = user_settings.get_value(key, settings_path)
        return fallback if value is None else value

    with session_errors():
        controller = SessionController(
            SqliteSessionRepository(db),
            SqliteExerciseCatalog(db),
            JsonTemplateProvider(templates),
            default_rest=setting("default_rest_time", 120),
            superset_rest=setting("superset_rest_time", 90),
            circuit_rest=setting("circuit_rest_time", 180),
        )
    ctx.obj = CliState(
        controller=controller,
        templates=controller.templates,
        sets_per_exercise=setting("default_sets_per_exercise", 3),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _state(ctx: typer.Context) -> CliState:
    return ctx.obj


def _open_session(ctx: typer.Context) -> SessionController:
    """Return the controller with the open session loaded, or exit."""
    controller = _state(ctx).controller
    with session_errors():
        session = controller.load()
    if session is None:
        typer.echo("No active session. Start one with 'gymsession start WORKOUT'.", err=True)
        raise typer.Exit(1)
    return controller


def _exercise_at(session: SessionAggregate, number: int) -> tuple[Optional[int], ExerciseRecord]:
    exercises = session.exercises
    if not 1 <= number <= len(exercises):
        raise InvalidInput(f"exercise number must be between 1 and {len(exercises)}")
    return session.locate(exercises[number - 1].id)


def _set_at(exercise: ExerciseRecord, number: int) -> SetRecord:
    if not 1 <= number <= len(exercise.sets):
        raise InvalidInput(f"set number must be between 1 and {len(exercise.sets)}")
    return exercise.sets[number - 1]


def _print_status(session: SessionAggregate) -> None:
    typer.echo(session_summary(session))


# ---------------------------------------------------------------------------
# Templates and start
# ---------------------------------------------------------------------------

@app.command()
def workouts(ctx: typer.Context) -> None:
    """List the workout templates."""
    with session_errors():
        items = _state(ctx).templates.list()
    if not items:
        typer.echo("No workouts defined.")
        return
    for template in items:
        if template.is_grouped:
            kind = f"{len(template.groups)} group(s)"
        else:
            kind = f"{len(template.exercises)} exercise(s)"
        typer.echo(f"{template.id}: {template.name} [{kind}]")


@app.command()
def start(
    ctx: typer.Context,
    workout_id: Annotated[str, typer.Argument(help="Workout template id")],
) -> None:
    """Start a session from a workout template."""
    controller = _state(ctx).controller
    with session_errors():
        session = controller.start(workout_id)
    typer.echo(f"Started session {session.id}")
    _print_status(session)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the open session."""
    controller = _open_session(ctx)
    _print_status(controller.view)


# ---------------------------------------------------------------------------
# Sets
# ---------------------------------------------------------------------------

@app.command()
def complete(
    ctx: typer.Context,
    exercise: Annotated[int, typer.Argument(help="Exercise number")],
    set_number: Annotated[int, typer.Argument(metavar="SET", help="Set number")],
) -> None:
    """Complete a set, or undo it if it is already completed."""
    controller = _open_session(ctx)
    with session_errors():
        group_position, record = _exercise_at(controller.view, exercise)
        target = _set_at(record, set_number)
        if group_position is None:
            controller.complete_set(record.id, target.id)
        else:
            controller.complete_group_set(group_position, record.id, target.id)
        feedback = controller.feedback(record.id, target.id)

    if not feedback.set_completed:
        typer.echo(f"Set {set_number} marked as not done.")
        return
    typer.echo(f"Set {set_number} done. Rest {feedback.rest_seconds:g}s.")
    if feedback.exercise_finished:
        typer.echo("Exercise finished.")
    if feedback.group_completed:
        typer.echo(
            f"Last round of group {group_position + 1} done. "
            f"Run 'gymsession advance {group_position + 1}' to close it."
        )
    elif feedback.round_completed:
        typer.echo(
            f"Round complete. Run 'gymsession advance {group_position + 1}' "
            "for the next round."
        )


@app.command()
def update(
    ctx: typer.Context,
    exercise: Annotated[int, typer.Argument(help="Exercise number")],
    set_number: Annotated[int, typer.Argument(metavar="SET", help="Set number")],
    weight: Annotated[Optional[float], typer.Option("--weight", "-w", help="Weight in kg")] = None,
    reps: Annotated[Optional[int], typer.Option("--reps", "-r", help="Repetitions")] = None,
) -> None:
    """Change the weight and/or reps of a set."""
    controller = _open_session(ctx)
    with session_errors():
        group_position, record = _exercise_at(controller.view, exercise)
        target = _set_at(record, set_number)
        if group_position is None:
            session = controller.update_set(record.id, target.id, weight, reps)
        else:
            session = controller.update_group_set(
                group_position, record.id, target.id, weight, reps
            )
    _print_status(session)


@app.command("update-all")
def update_all(
    ctx: typer.Context,
    exercise: Annotated[int, typer.Argument(help="Exercise number")],
    weight: Annotated[Optional[float], typer.Option("--weight", "-w", help="Weight in kg")] = None,
    reps: Annotated[Optional[int], typer.Option("--reps", "-r", help="Repetitions")] = None,
) -> None:
    """Apply weight and/or reps to every set not yet done."""
    controller = _open_session(ctx)
    with session_errors():
        _, record = _exercise_at(controller.view, exercise)
        session = controller.update_all_sets(record.id, weight, reps)
    _print_status(session)


@app.command("add-set")
def add_set(
    ctx: typer.Context,
    exercise: Annotated[int, typer.Argument(help="Exercise number")],
    weight: Annotated[Optional[float], typer.Option("--weight", "-w", help="Weight in kg")] = None,
    reps: Annotated[Optional[int], typer.Option("--reps", "-r", help="Repetitions")] = None,
) -> None:
    """Append a set to an exercise."""
    controller = _open_session(ctx)
    with session_errors():
        _, record = _exercise_at(controller.view, exercise)
        session = controller.add_set(record.id, weight, reps)
    _print_status(session)


@app.command("remove-set")
def remove_set(
    ctx: typer.Context,
    exercise: Annotated[int, typer.Argument(help="Exercise number")],
    set_number: Annotated[int, typer.Argument(metavar="SET", help="Set number")],
) -> None:
    """Remove a set from an exercise."""
    controller = _open_session(ctx)
    with session_errors():
        _, record = _exercise_at(controller.view, exercise)
        target = _set_at(record, set_number)
        session = controller.remove_set(record.id, target.id)
    _print_status(session)


# ---------------------------------------------------------------------------
# Exercises and groups
# ---------------------------------------------------------------------------

@app.command()
def notes(
    ctx: typer.Context,
    exercise: Annotated[int, typer.Argument(help="Exercise number")],
    text: Annotated[str, typer.Argument(help="Note text, empty to clear")],
) -> None:
    """Set the notes of an exercise."""
    controller = _open_session(ctx)
    with session_errors():
        _, record = _exercise_at(controller.view, exercise)
        controller.update_notes(record.id, text)
    typer.echo("Notes saved.")


@app.command()
def move(
    ctx: typer.Context,
    from_number: Annotated[int, typer.Argument(metavar="FROM", help="Current exercise number")],
    to_number: Annotated[int, typer.Argument(metavar="TO", help="New exercise number")],
) -> None:
    """Reorder the exercises of a standard session."""
    controller = _open_session(ctx)
    with session_errors():
        session = controller.move_exercise(from_number - 1, to_number - 1)
    _print_status(session)


@app.command("add-exercise")
def add_exercise(
    ctx: typer.Context,
    catalog_id: Annotated[str, typer.Argument(help="Catalog exercise id")],
    name: Annotated[str, typer.Option("--name", "-n", help="Display name")] = "",
    weight: Annotated[Optional[float], typer.Option("--weight", "-w", help="Weight in kg")] = None,
    reps: Annotated[Optional[int], typer.Option("--reps", "-r", help="Repetitions")] = None,
    sets: Annotated[Optional[int], typer.Option("--sets", "-s", help="Number of sets")] = None,
    rest: Annotated[Optional[float], typer.Option("--rest", help="Rest after each set in seconds")] = None,
) -> None:
    """Add an exercise to a standard session."""
    state = _state(ctx)
    controller = _open_session(ctx)
    kwargs = {
        "name": name,
        "set_count": sets if sets is not None else state.sets_per_exercise,
        "rest_time": rest,
    }
    if weight is not None:
        kwargs["weight"] = weight
    if reps is not None:
        kwargs["reps"] = reps
    with session_errors():
        session = controller.add_exercise(catalog_id, **kwargs)
    _print_status(session)


@app.command()
def advance(
    ctx: typer.Context,
    group: Annotated[int, typer.Argument(help="Group number")],
) -> None:
    """Move a superset or circuit to its next round."""
    controller = _open_session(ctx)
    with session_errors():
        session = controller.advance_round(group - 1)
    advanced = session.exercise_groups[group - 1]
    if advanced.is_completed:
        typer.echo(f"Group {group} completed.")
    else:
        typer.echo(
            f"Group {group}: round {advanced.current_round} of {advanced.total_rounds}."
        )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@app.command()
def pause(ctx: typer.Context) -> None:
    """Pause the open session."""
    controller = _open_session(ctx)
    with session_errors():
        controller.pause()
    typer.echo("Session paused.")


@app.command()
def resume(ctx: typer.Context) -> None:
    """Resume a paused session."""
    controller = _open_session(ctx)
    with session_errors():
        controller.resume()
    typer.echo("Session resumed.")


@app.command()
def end(ctx: typer.Context) -> None:
    """Finish the open session and remember the weights used."""
    controller = _open_session(ctx)
    with session_errors():
        session = controller.end()
    _print_status(session)
    typer.echo(f"Total volume: {session.total_volume:g} kg")


@app.command()
def cancel(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Discard the open session."""
    controller = _open_session(ctx)
    if not yes and not typer.confirm("Discard the current session?"):
        raise typer.Exit(0)
    with session_errors():
        controller.cancel()
    typer.echo("Session cancelled.")


@app.command()
def link(
    ctx: typer.Context,
    ref: Annotated[str, typer.Argument(help="External session reference, empty to clear")],
) -> None:
    """Link the open session to an external tracking session."""
    controller = _open_session(ctx)
    with session_errors():
        controller.attach_external_ref(ref or None)
    typer.echo("Reference saved.")


@app.command()
def export(
    ctx: typer.Context,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write JSON to this file instead of stdout"),
    ] = None,
) -> None:
    """Export the open session as JSON."""
    controller = _open_session(ctx)
    payload = json.dumps(session_to_dict(controller.view), indent=2)
    if output is None:
        typer.echo(payload)
        return
    try:
        output.write_text(payload, encoding="utf-8")
    except OSError as exc:
        typer.echo(f"Error: cannot write {output}: {exc.strerror or exc}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Exported to {output}")


if __name__ == "__main__":
    app()
