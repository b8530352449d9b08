"""
Exception hierarchy for the Casbin MongoDB adapter.

All adapter exceptions inherit from AdapterError, allowing callers to catch
every adapter-specific failure with a single except clause.

Exception Categories:
    - StorageError: MongoDB connection, index, read or write failure
    - UnsupportedOperationError: Incremental mutation requested
    - FilteredPolicySaveError: Save attempted on a partially loaded model
    - ConfigError: Invalid adapter configuration

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (operation, collection, ptype where applicable)
    - All errors provide actionable suggestions where possible
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003
ERROR_STORAGE_INDEX = 5004
ERROR_STORAGE_CLOSED = 5005

# Adapter contract errors: 6xxx
ERROR_UNSUPPORTED_OPERATION = 6001
ERROR_FILTERED_SAVE = 6002

# Configuration errors: 7xxx
ERROR_CONFIG_INVALID = 7001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class AdapterError(Exception):
    """
    Base exception for all adapter errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(AdapterError):
    """
    Base class for MongoDB storage errors.

    Attributes:
        operation: The operation that failed (e.g., "connect", "insert")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when the connection URL is invalid or the server is unreachable."""

    url: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to MongoDB: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check the connection URL and that the server is running"
        super().__post_init__()
        self.context.update({
            "url": self.url,
            "underlying_error": self.underlying_error,
        })


@dataclass
class StorageWriteError(StorageError):
    """Raised when a drop or insert fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when iterating stored rules fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageIndexError(StorageError):
    """Raised when a lookup index cannot be created."""

    field_name: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Failed to create index on {self.field_name}: {self.underlying_error}"
            )
        if self.code == 0:
            self.code = ERROR_STORAGE_INDEX
        if not self.suggestion:
            self.suggestion = "Check that the user has createIndex permission on the collection"
        super().__post_init__()
        self.context.update({
            "field_name": self.field_name,
            "underlying_error": self.underlying_error,
        })


@dataclass
class StorageClosedError(StorageError):
    """Raised when a closed session is used."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Cannot {self.operation}: session is closed"
        if self.code == 0:
            self.code = ERROR_STORAGE_CLOSED
        if not self.suggestion:
            self.suggestion = "Create a new adapter"
        super().__post_init__()


# =============================================================================
# Adapter Contract Errors
# =============================================================================


@dataclass
class UnsupportedOperationError(AdapterError, NotImplementedError):
    """
    Raised by the single-rule mutation methods.

    The adapter is load/save only. Catching NotImplementedError works too,
    so engines can detect the missing capability at runtime.

    Attributes:
        operation: The adapter method that was called
        section: Policy section passed by the engine
        ptype: Policy type passed by the engine
    """

    operation: str = ""
    section: str = ""
    ptype: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.operation} is not implemented"
        if self.code == 0:
            self.code = ERROR_UNSUPPORTED_OPERATION
        if not self.suggestion:
            self.suggestion = "Disable auto-save and call save_policy() instead"
        self.context.update({
            "operation": self.operation,
            "section": self.section,
            "ptype": self.ptype,
        })


@dataclass
class FilteredPolicySaveError(AdapterError):
    """Raised when save_policy is called after a filtered load."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Cannot save a filtered policy"
        if self.code == 0:
            self.code = ERROR_FILTERED_SAVE
        if not self.suggestion:
            self.suggestion = "Call load_policy() to load the full policy before saving"


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(AdapterError):
    """Raised when an adapter configuration file is unreadable or invalid."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })
