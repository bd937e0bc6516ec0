# services/learning_service/errors.py
"""Domain errors raised by the learning service. Routes map them to JSON responses."""


class LearningError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class QuizNotFound(LearningError):
    status_code = 404


class QuizLocked(LearningError):
    status_code = 403


class AttemptStateError(LearningError):
    status_code = 409


class InsufficientPoints(LearningError):
    status_code = 409


class RewardNotFound(LearningError):
    status_code = 404


class ProfileNotFound(LearningError):
    status_code = 404


class QuizValidationError(LearningError):
    status_code = 400


class GenerationError(LearningError):
    status_code = 500
