"""Errors raised by the session core."""


class NotFoundError(LookupError):
    """Requested record is absent or belongs to another user."""


class ExamNotFoundError(NotFoundError):
    pass


class SessionNotFoundError(NotFoundError):
    pass


class QuestionNotFoundError(NotFoundError):
    pass


class AnswerValidationError(ValueError):
    """An answer save is missing required fields."""


class InvalidTransitionError(ValueError):
    """The session's current state does not allow the requested transition."""


class SessionStateError(RuntimeError):
    """The session changed underneath a multi-step transition.

    The transition is aborted and nothing is committed.
    """
