"""Results of attempt commands: a redirect or a re-render, with a flash message."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from learnhub.models.db.attempt import TestAttempt
    from learnhub.services.grading_service import GradingResult


class Action(str, enum.Enum):
    """What the client should do next."""

    REDIRECT = "redirect"
    RENDER = "render"


class FlashLevel(str, enum.Enum):
    SUCCESS = "success"
    INFO = "info"
    NOTICE = "notice"
    DANGER = "danger"


@dataclass(frozen=True)
class Flash:
    level: FlashLevel
    message: str


@dataclass
class Outcome:
    """Terminal response of a command or of a guard that short-circuits it."""

    action: Action
    location: str | None = None
    flash: Flash | None = None
    status_code: int = 200
    attempt: TestAttempt | None = None
    result: GradingResult | None = None
    remaining_seconds: int | None = None
    editable: bool = False

    @classmethod
    def redirect(cls, location: str, flash: Flash | None = None, status_code: int = 200, **kwargs) -> "Outcome":
        return cls(Action.REDIRECT, location=location, flash=flash, status_code=status_code, **kwargs)

    @classmethod
    def render(cls, location: str, flash: Flash | None = None, status_code: int = 200, **kwargs) -> "Outcome":
        return cls(Action.RENDER, location=location, flash=flash, status_code=status_code, **kwargs)
