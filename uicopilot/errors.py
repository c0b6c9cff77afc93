"""Exception hierarchy for the UI copilot.

Unreadable source files are reported with the built-in ``OSError`` and never
reach this hierarchy; everything here is surfaced to a caller.
"""
from typing import Any, Dict, Optional


class CopilotError(Exception):
    """Base exception for all copilot errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize with a message and optional debugging context.

        Args:
            message: Human-readable error message
            details: Extra context for logs
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(CopilotError):
    """Raised when a chat request is rejected before touching any resource."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, details)
        self.field = field


class IngestError(CopilotError):
    """Raised when an ingestion stage fails."""

    def __init__(self, message: str, stage: str, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details["stage"] = stage
        super().__init__(message, details)
        self.stage = stage


class IngestInProgressError(IngestError):
    """Raised when an ingestion run is requested while another is active."""

    def __init__(self):
        super().__init__("Ingestion already in progress", stage="lock")


class RetrievalInitError(CopilotError):
    """Raised when the vector store is unreachable or empty at first use."""


class ChatError(CopilotError):
    """Raised when the language model fails while producing an answer.

    ``partial_text`` holds whatever was already streamed to the caller.
    """

    def __init__(self, message: str, partial_text: str = ""):
        super().__init__(message)
        self.partial_text = partial_text
