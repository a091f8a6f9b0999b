class CommandError(Exception):
    """Base class for rejected commands; carries a stable error code and HTTP status."""

    error = "command_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.error, "detail": self.message}


class NotFoundError(CommandError):
    error = "not_found"
    status_code = 404


class InvalidArgumentError(CommandError):
    error = "invalid_argument"
    status_code = 400


class ComputationFailure(CommandError):
    """The clustering pass raised; the session has already been reverted."""

    error = "computation_failure"
    status_code = 500
