"""
Course dependency graph engine - dependency edges between courses and
the schedule impact of moving a course's due date
"""

from .errors import CourseGraphError, NotFoundError, ValidationError
from .manager import DependencyManager

__all__ = [
    "CourseGraphError",
    "NotFoundError",
    "ValidationError",
    "DependencyManager",
]
