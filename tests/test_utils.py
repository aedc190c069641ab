from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from learnhub import messages
from learnhub.dependencies.context import resolve_locale
from learnhub.utils import json_utils, paths, time_utils


def test_json_round_trip(tmp_path: Path) -> None:
    payload = {"message": "xin chào", "count": 2}
    dumped = json_utils.json_dump(payload)
    assert "xin chào" in dumped
    assert json_utils.json_load(dumped) == payload
    assert json_utils.compact_json_dump(payload) == '{"message":"xin chào","count":2}'

    path = tmp_path / "payload.json"
    path.write_text(dumped, encoding="utf-8")
    assert json_utils.read_json_file(path, {}) == payload
    assert json_utils.read_json_file(tmp_path / "missing.json", {"fallback": True}) == {"fallback": True}


def test_time_utils_parsing() -> None:
    timestamp = time_utils.utc_now()
    assert timestamp.tzinfo is not None
    parsed = time_utils.parse_iso_timestamp(timestamp.isoformat())
    assert parsed == timestamp

    zulu = "2024-01-01T12:00:00Z"
    parsed_zulu = time_utils.parse_iso_timestamp(zulu)
    assert parsed_zulu is not None
    assert parsed_zulu.tzinfo is not None

    assert time_utils.parse_iso_timestamp("") is None
    assert time_utils.parse_iso_timestamp("yesterday") is None
    assert time_utils.parse_iso_timestamp(123) is None


def test_ensure_utc() -> None:
    naive = datetime(2026, 3, 2, 9, 0)
    assert time_utils.ensure_utc(naive) == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    hanoi = datetime(2026, 3, 2, 16, 0, tzinfo=timezone(timedelta(hours=7)))
    converted = time_utils.ensure_utc(hanoi)
    assert converted.tzinfo == timezone.utc
    assert converted.hour == 9


def test_paths_helpers() -> None:
    assert paths.root_path() == "/"
    assert paths.courses_path() == "/api/courses"
    assert paths.lesson_path(3, 7) == "/api/courses/3/lessons/7"
    assert paths.attempt_path(42) == "/api/attempts/42"


def test_translate_formats_and_falls_back() -> None:
    assert messages.translate("max_attempts_reached", "en", max_attempts=2) == (
        "You have used all 2 attempts for this test."
    )
    assert messages.translate("draft_saved", "fr") == messages.translate("draft_saved", "en")
    assert messages.translate("no_such_key", "vi") == "no_such_key"


def test_catalogs_share_keys() -> None:
    assert set(messages.MESSAGES["vi"]) == set(messages.MESSAGES["en"])
    assert messages.supported_locales() == ["en", "vi"]


@pytest.mark.parametrize(
    "header, expected",
    [
        (None, "en"),
        ("", "en"),
        ("vi-VN,vi;q=0.9,en;q=0.8", "vi"),
        ("fr-FR, en;q=0.5", "en"),
        ("de", "en"),
    ],
)
def test_resolve_locale(header, expected) -> None:
    assert resolve_locale(header) == expected
