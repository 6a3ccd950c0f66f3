"""
Chain Client - Error Classes

Categorized failures for push-channel, pull-channel and decoding faults.
"""

from typing import Optional
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of errors that can occur while talking to the chain"""
    CONNECTION = "connection"
    QUERY = "query"
    TIMEOUT = "timeout"
    DECODE = "decode"
    UNKNOWN = "unknown"


class ChainError(Exception):
    """Base exception for all chain client errors"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.cause = cause

    def __str__(self):
        return f"[{self.category.value}] {self.message}"

    def is_retryable(self) -> bool:
        """Check if the failed operation may succeed on a later attempt"""
        return self.category in [
            ErrorCategory.CONNECTION,
            ErrorCategory.QUERY,
            ErrorCategory.TIMEOUT
        ]


class ChainConnectionError(ChainError):
    """Raised when the streaming subscription cannot be opened or drops"""

    def __init__(self, message: str = "Push channel connection failed", **kwargs):
        super().__init__(message=message, category=ErrorCategory.CONNECTION, **kwargs)


class ChainQueryError(ChainError):
    """Raised when a head or range query fails"""

    def __init__(
        self,
        message: str = "Chain query failed",
        category: ErrorCategory = ErrorCategory.QUERY,
        **kwargs
    ):
        super().__init__(message=message, category=category, **kwargs)


class ChainTimeoutError(ChainQueryError):
    """Raised when a pull-channel query exceeds its timeout"""

    def __init__(self, message: str = "Chain query timed out", **kwargs):
        super().__init__(message=message, category=ErrorCategory.TIMEOUT, **kwargs)


class EventDecodeError(ChainError):
    """Raised when a log cannot be decoded into a purchase event"""

    def __init__(self, message: str = "Malformed purchase event", **kwargs):
        super().__init__(message=message, category=ErrorCategory.DECODE, **kwargs)
