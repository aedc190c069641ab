"""Utility modules."""
from learnhub.utils.json_utils import (
    compact_json_dump,
    json_dump,
    json_load,
    read_json_file,
)
from learnhub.utils.paths import attempt_path, courses_path, lesson_path, root_path
from learnhub.utils.time_utils import ensure_utc, parse_iso_timestamp, utc_now

__all__ = [
    "compact_json_dump",
    "json_dump",
    "json_load",
    "read_json_file",
    "attempt_path",
    "courses_path",
    "lesson_path",
    "root_path",
    "ensure_utc",
    "parse_iso_timestamp",
    "utc_now",
]
