"""
Typed failures raised by the exam services.

NotFound is used both for absent rows and for rows the caller may not see,
so another user's session is indistinguishable from a missing one.
"""


class ExamHallError(Exception):
    """Base exception for service-level failures"""
    status_code: int = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(ExamHallError):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, self.status_code)


class ForbiddenError(ExamHallError):
    """
    The entity exists but the caller lacks the required relationship
    (assignment, ownership or exam creator).
    """
    status_code = 403

    def __init__(self, message: str = "Operation not permitted"):
        super().__init__(message, self.status_code)


class ConflictError(ExamHallError):
    """A state-machine precondition does not hold."""
    status_code = 409

    def __init__(self, message: str = "Conflicting state"):
        super().__init__(message, self.status_code)


class ValidationError(ExamHallError):
    status_code = 400

    def __init__(self, message: str = "Invalid input"):
        super().__init__(message, self.status_code)
