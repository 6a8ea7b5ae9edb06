"""Error types raised by the reverse prompt pipeline.

Every error is non-fatal: the command layer reports it as a single notification
and the host keeps running.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


class ErrorCode:
    """Constants for machine-readable error codes."""

    CONFIGURATION_ERROR = "configuration_error"
    REQUEST_IN_PROGRESS = "request_in_progress"
    INPUT_TOO_SHORT = "input_too_short"
    PROVIDER_ERROR = "provider_error"


@dataclass
class ReversePromptError(Exception):
    """Base exception for all reverse prompt failures.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Short human-readable description shown to the user.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "error"

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ConfigurationError(ReversePromptError):
    """Raised for a missing credential or an invalid setting value."""

    error_code: str = field(default=ErrorCode.CONFIGURATION_ERROR)
    message: str = field(default="Invalid configuration")
    details: dict[str, Any] = field(default_factory=dict)

    field_name: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field_name is not None:
            result["field"] = self.field_name
        return result


@dataclass
class RequestInProgressError(ReversePromptError):
    """Raised when a generation is requested while another one is streaming."""

    error_code: str = field(default=ErrorCode.REQUEST_IN_PROGRESS)
    message: str = field(default="Another request is in progress")
    details: dict[str, Any] = field(default_factory=dict)

    severity: ClassVar[str] = "warning"


@dataclass
class InputTooShortError(ReversePromptError):
    """Raised when the extracted context is below the minimum length."""

    error_code: str = field(default=ErrorCode.INPUT_TOO_SHORT)
    message: str = field(default="Text is too short")
    details: dict[str, Any] = field(default_factory=dict)

    length: int = field(default=0)
    minimum: int = field(default=2)

    severity: ClassVar[str] = "warning"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["length"] = self.length
        result["minimum"] = self.minimum
        return result


@dataclass
class ProviderError(ReversePromptError):
    """Raised when the model provider fails to open or finish a stream."""

    error_code: str = field(default=ErrorCode.PROVIDER_ERROR)
    message: str = field(default="The model provider request failed")
    details: dict[str, Any] = field(default_factory=dict)

    status_code: int | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status_code"] = self.status_code
        return result


__all__ = [
    "ConfigurationError",
    "ErrorCode",
    "InputTooShortError",
    "ProviderError",
    "RequestInProgressError",
    "ReversePromptError",
]
