from typing import Any, Optional


class ApiError(Exception):
    """Error surfaced to API clients with an HTTP status hint."""

    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: Optional[str] = None, data: Any = None, status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.data = data
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = 400
    default_message = "Bad request"


class InvalidReference(BadRequest):
    default_message = "Invalid identifier"


class ReferenceNotFound(BadRequest):
    default_message = "Referenced record does not exist"


class DuplicateEmail(BadRequest):
    default_message = "A user with that email already exists"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"
