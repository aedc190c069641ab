"""FastAPI dependencies."""
from learnhub.dependencies.auth import get_current_user
from learnhub.dependencies.context import get_request_context, get_scheduler

__all__ = ["get_current_user", "get_request_context", "get_scheduler"]
