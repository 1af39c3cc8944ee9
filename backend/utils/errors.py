# Errors raised by the service layer and mapped to HTTP responses in main.py


class ServiceError(Exception):
    """Base class for expected, caller-recoverable failures."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(ServiceError):
    status_code = 404


class InvalidInputError(ServiceError):
    status_code = 400


class BlobStorageError(Exception):
    """The blob store could not persist an upload."""
