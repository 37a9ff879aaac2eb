"""Service module exports.

``habits`` is left out of the eager imports because the models import the
streak value objects from this package.
"""

from . import stats, streaks

__all__ = [
    "stats",
    "streaks",
]
