"""
Error taxonomy for the dependency engine.

Every error is caller-correctable or a missing resource; both carry the
status code the request layer should answer with.
"""

from typing import Any, Dict


class CourseGraphError(Exception):
    """Base class for engine errors"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
            },
        }


class ValidationError(CourseGraphError):
    """Rejected input: cycle, duplicate edge, missing course, bad option"""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(CourseGraphError):
    """The requested course or dependency does not exist"""

    code = "NOT_FOUND"
    status_code = 404
