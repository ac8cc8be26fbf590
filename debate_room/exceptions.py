"""Exceptions raised by the room engine."""


class RoomError(Exception):
    """Base class for room engine errors."""


class ValidationError(RoomError):
    """A request was rejected; reported only to the connection that sent it."""

    code = "ValidationError"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_payload(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class UsernameTakenError(ValidationError):
    code = "UsernameTaken"


class RoomFullError(ValidationError):
    code = "RoomFull"


class RoomNotFoundError(ValidationError):
    code = "RoomNotFound"


class NotYourTurnError(ValidationError):
    code = "NotYourTurn"


class ConversationNotStartedError(ValidationError):
    code = "ConversationNotStarted"


class ConversationAlreadyStartedError(ValidationError):
    code = "ConversationAlreadyStarted"


class ConversationEndedError(ValidationError):
    code = "ConversationEnded"


class NoParticipantsError(ValidationError):
    code = "NoParticipants"


class NotEnoughParticipantsError(ValidationError):
    code = "NotEnoughParticipants"


class NotApplicableError(ValidationError):
    code = "NotApplicable"


class AlreadyUsedError(ValidationError):
    code = "AlreadyUsed"


class VerdictNotFoundError(ValidationError):
    code = "VerdictNotFound"


class NotSanctionedError(ValidationError):
    code = "NotSanctioned"


class MotionPendingError(ValidationError):
    code = "MotionPending"


class InvalidPayloadError(ValidationError):
    code = "InvalidPayload"


class RoomClosedError(RoomError):
    """The room was deleted while a command was queued for it."""


class EvaluatorError(RoomError):
    """The text evaluator failed; always degraded to 'no intervention'."""


class EvaluatorTimeoutError(EvaluatorError):
    """The evaluator did not answer within the configured timeout."""


class MalformedResponseError(EvaluatorError):
    """The evaluator answered with something that could not be parsed."""

    def __init__(self, reason: str, raw_response: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.raw_response = raw_response


class EvaluatorUnavailableError(EvaluatorError):
    """The evaluator backend could not be reached or is misconfigured."""
