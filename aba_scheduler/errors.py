from aba_scheduler.models import Blocker


class SchedulingError(Exception):
    """Base class for errors raised by the manual scheduling operations."""

    pass


class AssignmentNotFoundError(SchedulingError):
    """Raised when an assignment id is not part of the schedule."""

    pass


class UnknownEntityError(SchedulingError):
    """Raised when a staff or student id is not on the supplied rosters."""

    pass


class IneligibleAssignmentError(SchedulingError):
    """Raised when a manual placement fails the eligibility filter."""

    def __init__(self, message: str, blocker: Blocker):
        super().__init__(message)
        self.blocker = blocker


class SlotFullError(SchedulingError):
    """Raised when the student's slot already has the staff its ratio requires."""

    pass


# Mapping of custom exceptions to HTTP status codes
CUSTOM_ERRORS = {
    AssignmentNotFoundError: 404,
    UnknownEntityError: 404,
    IneligibleAssignmentError: 422,
    SlotFullError: 409,
}
