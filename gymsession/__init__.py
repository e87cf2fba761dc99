"""Shared constants and defaults for the workout session engine."""

from __future__ import annotations

from pathlib import Path

# Default values used throughout the engine
DEFAULT_SETS_PER_EXERCISE = 3
DEFAULT_REST_DURATION = 120
DEFAULT_SUPERSET_REST = 90
DEFAULT_CIRCUIT_REST = 180

# Longest exercise note kept on a session exercise
MAX_NOTES_LENGTH = 200

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

# Location of the SQLite store and the workout templates file
DEFAULT_DB_PATH = DATA_DIR / "gymsession.db"
DEFAULT_TEMPLATES_PATH = DATA_DIR / "workouts.json"

__all__ = [
    "DEFAULT_SETS_PER_EXERCISE",
    "DEFAULT_REST_DURATION",
    "DEFAULT_SUPERSET_REST",
    "DEFAULT_CIRCUIT_REST",
    "MAX_NOTES_LENGTH",
    "DATA_DIR",
    "DEFAULT_DB_PATH",
    "DEFAULT_TEMPLATES_PATH",
]
