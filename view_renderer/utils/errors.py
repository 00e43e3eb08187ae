"""
Error classes for the view rendering pipeline.

Provides structured error handling with error codes,
context information, and proper exception chaining.
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


@dataclass
class ErrorContext:
    """Error context information."""
    operation: str
    feed_id: Optional[str] = None
    record_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class PipelineError(Exception):
    """Base exception for pipeline errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        result = {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

        if self.context:
            result["context"] = {
                "operation": self.context.operation,
                "feed_id": self.context.feed_id,
                "record_id": self.context.record_id,
                "metadata": self.context.metadata,
            }

        return result


class ConfigError(PipelineError):
    """Error raised for malformed events or artifacts missing their location."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="CONFIG_ERROR",
            context=context,
            details=details or {}
        )
        self.config_key = config_key
        self.config_value = config_value

        if config_key:
            self.details["config_key"] = config_key
        if config_value is not None:
            self.details["config_value"] = str(config_value)


class StoreError(PipelineError):
    """Error raised when a key-value or blob store operation fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        bucket: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "STORE_ERROR",
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            details=details or {}
        )
        self.operation = operation
        self.table = table
        self.bucket = bucket

        if operation:
            self.details["operation"] = operation
        if table:
            self.details["table"] = table
        if bucket:
            self.details["bucket"] = bucket


class RecordNotFoundError(StoreError):
    """Error raised when a record lookup by identity finds nothing."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        key: Optional[Dict[str, Any]] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(
            message=message,
            operation="get_item",
            table=table,
            context=context,
            details={"key": dict(key or {})},
            error_code="RECORD_NOT_FOUND",
        )
        self.key = dict(key or {})


class RenderError(PipelineError):
    """Error raised when template expansion fails."""

    def __init__(
        self,
        message: str,
        view_id: Optional[Any] = None,
        item_id: Optional[Any] = None,
        context: Optional[ErrorContext] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code="RENDER_ERROR",
            context=context,
            details=details or {}
        )
        self.view_id = view_id
        self.item_id = item_id

        if view_id is not None:
            self.details["view_id"] = str(view_id)
        if item_id is not None:
            self.details["item_id"] = str(item_id)


class BatchFailedError(PipelineError):
    """Error raised when one or more branches of a fan-out failed."""

    def __init__(
        self,
        message: str,
        errors: List[BaseException],
        label: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(
            message=message,
            error_code="BATCH_FAILED",
            context=context,
            details={"error_count": len(errors)}
        )
        self.errors = list(errors)
        self.label = label

        if label:
            self.details["label"] = label

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [describe_error(error) for error in self.errors]
        return result


def describe_error(error: BaseException) -> Dict[str, Any]:
    """Describe any exception as a dictionary, preserving pipeline error details."""
    if isinstance(error, PipelineError):
        return error.to_dict()
    return {
        "error_code": "UNEXPECTED_ERROR",
        "message": str(error),
        "details": {"type": type(error).__name__},
    }


def error_code_of(error: BaseException) -> str:
    """Return the error code used for logging and metrics labels."""
    if isinstance(error, PipelineError):
        return error.error_code
    return "UNEXPECTED_ERROR"
