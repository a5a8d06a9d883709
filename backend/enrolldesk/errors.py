"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; main.py maps each class to its status code and a
`{"error": message}` body. Row-level import defects are not errors and never
show up here.
"""


class ServiceError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(ServiceError):
    """Missing file, missing field or an out-of-range request value."""

    status_code = 400


class ParseError(ServiceError):
    """The uploaded spreadsheet could not be read or holds no rows."""

    status_code = 400


class AuthenticationError(ServiceError):
    """No verifiable requester identity."""

    status_code = 401


class NotFound(ServiceError):
    """Unknown student or user id."""

    status_code = 404


class StoreError(ServiceError):
    """The document store rejected a read, write or batch commit."""

    status_code = 500
