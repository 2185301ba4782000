class QuizError(Exception):
    """Base class for quiz engine errors."""

    def __init__(self, message: str = None):
        super().__init__(message or self.__doc__)
        self.message = message or self.__doc__


class NotFoundError(QuizError):
    """Resource not found."""


class SessionNotFoundError(NotFoundError):
    """Quiz session not found."""


class QuestionNotFoundError(NotFoundError):
    """Question not found."""


class NoMoreQuestionsError(NotFoundError):
    """NO_MORE_QUESTIONS: Could not load any questions for the selected category."""


class UserNotFoundError(NotFoundError):
    """User not found."""


class ForbiddenError(QuizError):
    """Quiz session belongs to another user."""


class InvalidStateError(QuizError):
    """Operation is not allowed in the current session state."""


class StatsStoreError(QuizError):
    """Failed to update user statistics."""


class EmailTakenError(QuizError):
    """Email is already in use."""


class InvalidCredentialsError(QuizError):
    """Invalid email or password."""


class PasswordTooLongError(QuizError):
    """Password must be at most 72 bytes in UTF-8."""
