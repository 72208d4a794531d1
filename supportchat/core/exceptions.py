# supportchat/core/exceptions.py
"""
Domain-specific exceptions for the support chat.

Expected send outcomes are returned as results, not raised. The exceptions
here cover programmer errors (using a closed session) and I/O failures at
the change-feed boundary.
"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class InvalidSessionStateException(DomainException):
    """Raised when an operation is attempted on an unopened or closed session."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            message=f"Cannot {operation} while session is {state}",
            code="INVALID_STATE",
            details={"operation": operation, "state": state},
        )


class ChangeFeedException(Exception):
    """
    Exception raised for change-feed I/O errors.

    Used when an append, delete or subscription against the backing
    store fails (connection loss, rejected write, malformed record).
    """
