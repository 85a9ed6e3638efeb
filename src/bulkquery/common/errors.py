from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict


class ErrorSeverity(str, Enum):
    """Severity levels for bulk query errors."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCode(str, Enum):
    """Standardized error codes for a bulk query invocation."""
    CONNECTION_FAILED = "CONNECTION_FAILED"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    EXECUTION_TIMEOUT = "EXECUTION_TIMEOUT"
    SCHEMA_MISMATCH = "SCHEMA_MISMATCH"


class BulkQueryError(Exception):
    """Base class for all bulkquery exceptions."""


class SplitError(BulkQueryError):
    """Raised when a script cannot be split into batches.

    Fatal to the whole invocation; no target is dispatched.
    """


class TargetConnectionError(BulkQueryError):
    """Raised when a connection to a target cannot be opened."""


class TargetExecutionError(BulkQueryError):
    """Raised when a batch fails on a target (including statement timeouts)."""

    def __init__(self, message: str, batch_index: Optional[int] = None, timed_out: bool = False) -> None:
        super().__init__(message)
        self.batch_index = batch_index
        self.timed_out = timed_out


class ConfigError(BulkQueryError):
    """Raised when the servers configuration file is invalid."""


class DuplicateServerError(ConfigError):
    """
    Exception raised when a server with the same display name already exists.
    """

    def __init__(self, display_name: str) -> None:
        """
        Initialize DuplicateServerError.

        Args:
            display_name (str): The conflicting server display name.
        """
        self.display_name: str = display_name
        message = (
            f"A server already exists with the name `{self.display_name}`.\n"
            f"Choose a different name and try again."
        )
        super().__init__(message)


class UnknownServerError(ConfigError):
    """Raised when a server display name is not present in the configuration."""


class UnsupportedEngineError(BulkQueryError):
    """Raised when no adapter is registered for a connection URL's backend."""


class TargetError(BaseModel):
    """Represents a structured, per-target error within an invocation.

    Attributes:
        target (str): Label of the target ("<database> - <server>").
        message (str): The human-readable message shown to the operator.
        severity (ErrorSeverity): The severity of the error.
        error_code (ErrorCode): The standardized error code.
        details (Optional[Any]): Additional context or metadata.
    """
    model_config = ConfigDict(extra="ignore")

    target: str
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    error_code: ErrorCode
    details: Optional[Any] = None
