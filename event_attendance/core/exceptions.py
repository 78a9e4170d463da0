"""
Domain exceptions for the attendance engine

Business-rule rejections are NOT exceptions: the validator returns a
ValidationResult with is_valid=False. The classes below cover caller
contract violations and refused lifecycle transitions.
"""
from typing import Any, Dict, Optional

from atams.exceptions import (
    BadRequestException,
    ConflictException,
    UnprocessableEntityException,
)


class InvalidCoordinateException(BadRequestException):
    """400 - latitude or longitude out of range"""

    def __init__(self, latitude: float, longitude: float, message: Optional[str] = None):
        if message is None:
            if not -90 <= latitude <= 90:
                message = f"invalid latitude: {latitude} (must be between -90 and 90)"
            else:
                message = f"invalid longitude: {longitude} (must be between -180 and 180)"
        super().__init__(message, {"latitude": latitude, "longitude": longitude})


class ContractViolationException(UnprocessableEntityException):
    """422 - caller supplied malformed or mismatched inputs to the engine"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class EventUnavailableException(BadRequestException):
    """400 - event window or status does not allow the requested action"""

    def __init__(self, message: str, state: Optional[str] = None):
        details = {"field": "event"}
        if state is not None:
            details["state"] = state
        super().__init__(message, details)


class EventLifecycleException(ConflictException):
    """409 - lifecycle transition refused for the event's current state"""
