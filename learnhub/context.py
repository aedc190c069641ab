"""Request-scoped context passed explicitly to service operations."""
from dataclasses import dataclass, field
from datetime import datetime

from learnhub.config import DEFAULT_LOCALE
from learnhub.models.db.user import User
from learnhub.utils import utc_now


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, at what server time, in which locale."""

    user: User
    now: datetime = field(default_factory=utc_now)
    locale: str = DEFAULT_LOCALE
