class InTrackError(Exception):
    """Base class for errors the request layer maps to a client response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InTrackError):
    status_code = 400


class NotFoundError(InTrackError):
    status_code = 404


class ConflictError(InTrackError):
    status_code = 409
