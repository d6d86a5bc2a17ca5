class QuizError(Exception):
    """Base class for errors raised by the quiz repository and scoring."""


class QuizNotFound(QuizError):
    """The quiz does not exist, or is not owned by the caller."""

    def __init__(self, quiz_id):
        self.quiz_id = quiz_id
        super().__init__(f"Quiz {quiz_id} not found")


class QuizValidationError(QuizError):

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or []
        super().__init__(message)


class PersistenceError(QuizError):
    """A storage error aborted the operation. The transaction has been rolled back."""
