"""
Client-level models for talking to the reporting service.

Clients never raise on remote failure: every call returns a
ClientResponse carrying either a result or a ClientError.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class ClientErrorCode(IntEnum):
    """Error codes for reporting-service calls."""
    # Remote rejected the request (HTTP 4xx/5xx)
    HTTP_ERROR = -32000
    # Transport-level errors
    CONNECTION_ERROR = -32001
    TIMEOUT_ERROR = -32002
    # Response could not be understood
    INVALID_RESPONSE = -32003
    INTERNAL_ERROR = -32603


@dataclass
class ClientError:
    """Represents a failed call to the reporting service."""
    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            result["data"] = self.data
        return result

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    @classmethod
    def http_error(cls, status: int, reason: str | None, data: Any = None) -> ClientError:
        return cls(ClientErrorCode.HTTP_ERROR, f"HTTP {status}: {reason}", data)

    @classmethod
    def connection_error(cls, message: str, data: Any = None) -> ClientError:
        return cls(ClientErrorCode.CONNECTION_ERROR, message, data)

    @classmethod
    def timeout_error(cls, message: str, data: Any = None) -> ClientError:
        return cls(ClientErrorCode.TIMEOUT_ERROR, message, data)

    @classmethod
    def invalid_response(cls, message: str, data: Any = None) -> ClientError:
        return cls(ClientErrorCode.INVALID_RESPONSE, message, data)


@dataclass
class ClientResponse:
    """Represents the result of a reporting-service call."""
    success: bool
    result: Any = None
    error: ClientError | None = None
    status: int | None = None

    @property
    def item_id(self) -> str | None:
        """The id the service assigned to a started launch or item."""
        if isinstance(self.result, dict):
            value = self.result.get("id")
            return str(value) if value is not None else None
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        if self.success:
            return {
                "success": True,
                "result": self.result,
            }
        else:
            return {
                "success": False,
                "error": self.error.to_dict() if self.error else None,
            }

    @classmethod
    def ok(cls, result: Any = None, status: int | None = None) -> ClientResponse:
        return cls(success=True, result=result, status=status)

    @classmethod
    def from_error(cls, error: ClientError, status: int | None = None) -> ClientResponse:
        """Create a response from a transport-level or remote error."""
        return cls(success=False, error=error, status=status)
