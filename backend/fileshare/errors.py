"""Domain errors for the file lifecycle.

Each error carries the HTTP status and the public code the API boundary
reports. Handlers never catch these; ``fileshare.main`` maps them once.
"""


class FileShareError(Exception):
    """Base class for every error the API maps to a response."""

    status_code = 500
    code = "InternalError"
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    @property
    def public_message(self) -> str:
        return str(self)


class EmptyPayload(FileShareError):
    status_code = 400
    code = "EmptyPayload"
    message = "No file uploaded"


class PayloadTooLarge(FileShareError):
    status_code = 413
    code = "PayloadTooLarge"
    message = "File exceeds the maximum upload size"


class NotFound(FileShareError):
    status_code = 404
    code = "NotFound"
    message = "File not found"


class Expired(FileShareError):
    status_code = 410
    code = "Expired"
    message = "File has expired"


class DuplicateKey(FileShareError):
    """A record with the same file_id already exists. Retried by the controller."""

    code = "DuplicateKey"
    message = "Duplicate file identifier"


class StorageUnavailable(FileShareError):
    """The durable store failed or timed out. Detail is hidden outside development."""

    status_code = 500
    code = "StorageUnavailable"
    message = "Storage unavailable"

    @property
    def public_message(self) -> str:
        return self.message
