"""
Centralized error handling for the global search subsystem.

This module provides the exception hierarchy shared by the synchronization
pipeline, the federated search aggregator and the surrounding service facade.
Only the two authorization errors are ever surfaced to search callers; the
remaining errors are raised internally and absorbed at well-defined seams.
"""

from typing import Optional, Dict, Any, Type

from .logger_config import logger


class GlobalSearchError(Exception):
    """
    Base exception for all global search errors.

    Attributes:
        message: Human-readable error message
        component: Name of the component where the error occurred
        context: Additional context information about the error
    """

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        self.message = message
        self.component = component
        self.context = context or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.component:
            return f"[{self.component}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "context": self.context
        }


class AuthenticationRequired(GlobalSearchError):
    """
    A search was attempted without a caller identity.

    Surfaced to the caller. No index access happens before this is raised.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        component: str = "search",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


class AuthorizationDenied(GlobalSearchError):
    """
    A caller without elevated privilege attempted a cross-tenant search.

    Surfaced to the caller. No index access happens before this is raised.
    """

    def __init__(
        self,
        message: str = "Admin privileges required for cross-tenant search",
        component: str = "search",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


class ProjectionFailure(GlobalSearchError):
    """
    An entity is missing a link in its ownership chain.

    Raised while walking parent references. The projector catches it,
    logs it and still produces a document with empty tenant fields.
    """

    def __init__(
        self,
        message: str,
        component: str = "projector",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


class IndexWriteFailure(GlobalSearchError):
    """
    The index store rejected an upsert or delete.

    Logged and skipped by the synchronization pipeline; never retried.
    """

    def __init__(
        self,
        message: str,
        component: str = "index_store",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


class PerTypeQueryFailure(GlobalSearchError):
    """
    One entity type's index failed or timed out during a federated search.

    The failing type contributes zero results; the other types still return.
    """

    def __init__(
        self,
        message: str,
        component: str = "aggregator",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


class ConfigurationUnavailable(GlobalSearchError):
    """The index subsystem is disabled; callers should no-op."""

    def __init__(
        self,
        message: str = "Search index subsystem is disabled",
        component: str = "configuration",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


class ConfigurationError(GlobalSearchError):
    """
    Error in configuration.

    Raised when configuration is invalid or cannot be parsed, including:
    - Values outside their min/max limits
    - Values of the wrong type
    - YAML parse failures
    """

    def __init__(
        self,
        message: str,
        component: str = "configuration",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


class QueueError(GlobalSearchError):
    """Error in sync queue operations (queue closed, worker pool misuse)."""

    def __init__(
        self,
        message: str,
        component: str = "sync_queue",
        context: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, component, context)


def handle_error(
    error: Exception,
    reraise: bool = False,
    level: str = "error"
) -> None:
    """
    Handle an error with consistent logging behavior.

    Args:
        error: The exception to handle
        reraise: Whether to re-raise the exception after logging
        level: Log level (debug, info, warning, error, critical)

    Example:
        >>> try:
        ...     store.upsert(document)
        ... except Exception as e:
        ...     handle_error(IndexWriteFailure(str(e)), level="warning")
    """
    if isinstance(error, GlobalSearchError):
        error_dict = error.to_dict()
        log_message = f"{error_dict['error_type']}: {error_dict['message']}"
        if error_dict.get('context'):
            log_message += f" | Context: {error_dict['context']}"
        extra = {'component': error.component, 'error_type': error_dict['error_type']}
    else:
        log_message = f"{type(error).__name__}: {error}"
        extra = {'error_type': type(error).__name__}

    log_func = getattr(logger, level.lower(), logger.error)
    log_func(log_message, extra=extra)

    if reraise:
        raise error


def wrap_error(
    error: Exception,
    message: str,
    error_class: Type[GlobalSearchError] = GlobalSearchError,
    **context: Any
) -> GlobalSearchError:
    """
    Wrap a lower-level exception in a GlobalSearchError subclass.

    The original exception is kept as ``__cause__``.

    Args:
        error: The original exception
        message: Message for the wrapping error
        error_class: GlobalSearchError subclass to instantiate
        **context: Extra context fields

    Returns:
        The wrapping error, ready to raise or log
    """
    wrapped_context = {
        "original_error": str(error),
        "original_type": type(error).__name__,
        **context
    }
    wrapped = error_class(f"{message}: {error}", context=wrapped_context)
    wrapped.__cause__ = error
    return wrapped
