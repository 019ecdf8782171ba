"""
Error types raised by the generation and evaluation services.
Each error carries the HTTP status the API layer responds with.
"""
from typing import Optional


class AssignmentStudioError(Exception):
    """Base class for all service errors"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(AssignmentStudioError):
    """Caller-supplied input failed validation"""
    status_code = 400


class ConfigurationError(AssignmentStudioError):
    """A required setting (the API credential) is missing"""
    status_code = 500


class UpstreamError(AssignmentStudioError):
    """The completion service failed, timed out, or returned a non-success status"""
    status_code = 500

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class MalformedResponseError(AssignmentStudioError):
    """No JSON value could be recovered from the model's text"""
    status_code = 500

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


class SchemaValidationError(AssignmentStudioError):
    """Recovered JSON does not have the expected shape"""
    status_code = 500


class SessionStateError(AssignmentStudioError):
    """An interaction step was requested from a state that does not allow it"""
    status_code = 409
