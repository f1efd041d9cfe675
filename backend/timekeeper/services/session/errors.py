class TimekeeperError(Exception):
    """Base class for all timekeeper errors."""


class ValidationError(TimekeeperError):
    """Setup data is missing or inconsistent. Blocks progression."""

    def __init__(self, message, problems=None):
        super().__init__(message)
        self.message = message
        self.problems = list(problems or [])

    def to_dict(self):
        return {'error': self.message, 'problems': self.problems}


class PersistenceError(TimekeeperError):
    """A gateway call failed. Retryable; session state is unaffected."""

    retryable = True


class NotFoundError(PersistenceError):
    retryable = False


class InvariantViolation(TimekeeperError):
    """A state transition was requested that the session cannot make."""
