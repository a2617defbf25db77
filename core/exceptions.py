"""
Error taxonomy of the catalog admin API.

Services raise these; ``main.py`` turns them into ``error_response`` bodies
with the class name as ``error_code``.
"""
from typing import Any, Dict, Optional
from fastapi import status


class BaseCustomException(Exception):
    """Base custom exception class"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class BusinessLogicError(BaseCustomException):
    """A request that is well formed but makes no sense for the catalog"""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class ResourceNotFoundError(BaseCustomException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier: Any, details: Optional[Dict[str, Any]] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with identifier '{identifier}' not found", details=details)


class FieldError(BaseCustomException):
    """Error tied to one input field, reported under ``details["field"]``"""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, details=details)


class ValidationError(FieldError):
    """Input that would break the tree: bad parent, cycle, blocked delete"""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class ConflictError(FieldError):
    """Name already used inside the category"""

    status_code = status.HTTP_409_CONFLICT


class ExternalServiceError(BaseCustomException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, service: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"External service '{service}' error: {message}", details=details)
