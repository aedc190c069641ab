"""Learning-management API with timed, auto-graded lesson tests."""

__version__ = "0.1.0"
