"""Error taxonomy shared by services and the HTTP layer."""


class AppError(Exception):
    """Base error that knows how it is shown to the caller."""

    status_code = 500

    def __init__(self, error: str, message: str | None = None):
        super().__init__(error if message is None else f"{error}: {message}")
        self.error = error
        self.message = message

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        return body


class ValidationError(AppError):
    """Missing or malformed client input. Never reaches storage."""

    status_code = 400


class StorageError(AppError):
    """Database fault during a read or write."""

    status_code = 500


class StorageUnavailable(StorageError):
    """Storage could not be reached at startup."""
