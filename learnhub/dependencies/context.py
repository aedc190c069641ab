"""Request-scoped dependencies: acting context and grading scheduler."""
from typing import Annotated

from fastapi import Depends, Header

from learnhub.config import DEFAULT_LOCALE
from learnhub.context import RequestContext
from learnhub.dependencies.auth import get_current_user
from learnhub.messages import supported_locales
from learnhub.models.db.user import User
from learnhub.services.scheduler_service import GradingScheduler, ThreadingGradingScheduler
from learnhub.utils import utc_now

default_scheduler = ThreadingGradingScheduler()


def resolve_locale(accept_language: str | None) -> str:
    """Pick the first supported language from an Accept-Language header."""
    if not accept_language:
        return DEFAULT_LOCALE
    available = supported_locales()
    for part in accept_language.split(","):
        tag = part.split(";")[0].strip().lower()
        language = tag.split("-")[0]
        if language in available:
            return language
    return DEFAULT_LOCALE


async def get_request_context(
    current_user: Annotated[User, Depends(get_current_user)],
    accept_language: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Build the context for one request: user, server clock, locale."""
    return RequestContext(
        user=current_user,
        now=utc_now(),
        locale=resolve_locale(accept_language),
    )


def get_scheduler() -> GradingScheduler:
    """Scheduler used to finalize attempts when their time runs out."""
    return default_scheduler
