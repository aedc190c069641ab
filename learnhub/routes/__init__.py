"""API route modules."""
from learnhub.routes import attempts, auth, courses

__all__ = ["attempts", "auth", "courses"]
