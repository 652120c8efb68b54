"""Standardized exception hierarchy for regnet.

All exceptions carry a human-readable message plus optional structured
context so they can be logged with structlog without losing detail.

Usage:
    from regnet.exceptions import DockerCommandError, ValidationError

    try:
        await docker_service.start(network)
    except DockerCommandError as e:
        logger.error("network_start_failed", error=str(e), context=e.context)
"""

from __future__ import annotations

from typing import Any


class RegnetError(Exception):
    """Base exception for all regnet errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Format exception with context for logging."""
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Validation & Configuration Errors
# =============================================================================


class ValidationError(RegnetError):
    """Raised when a domain rule rejects an operation before any external call.

    Examples: a negative block count, a duplicate node name, removing the
    last bitcoin node of a network.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class ConfigurationError(RegnetError):
    """Raised when a ``REGNET_*`` setting or ``.env`` entry is invalid."""

    def __init__(self, message: str, *, setting: str | None = None, **kwargs: Any) -> None:
        self.setting = setting
        if setting:
            kwargs.setdefault("context", {})["setting"] = setting
        super().__init__(message, **kwargs)


# =============================================================================
# Topology Errors
# =============================================================================


class TopologyError(RegnetError):
    """Base class for topology lookup and state errors."""


class NetworkNotFoundError(TopologyError):
    """Raised when a network id does not exist."""

    def __init__(self, network_id: int, **kwargs: Any) -> None:
        self.network_id = network_id
        super().__init__(f"Network with the id '{network_id}' was not found", **kwargs)


class NodeNotFoundError(TopologyError):
    """Raised when a node name does not exist in a network."""

    def __init__(self, node_name: str, *, network_id: int | None = None, **kwargs: Any) -> None:
        self.node_name = node_name
        context = kwargs.get("context", {})
        if network_id is not None:
            context["network_id"] = network_id
        kwargs["context"] = context
        super().__init__(f"Node '{node_name}' was not found", **kwargs)


class InvalidStatusTransitionError(TopologyError):
    """Raised when a status change is not allowed by the node state machine."""

    def __init__(self, name: str, current: Any, target: Any, **kwargs: Any) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot change the status of '{name}' from {current} to {target}", **kwargs
        )


class UnsupportedImplementationError(RegnetError):
    """Raised for an implementation tag without a compose template or service binding.

    This is a programming error, never retried.
    """

    def __init__(self, implementation: Any, **kwargs: Any) -> None:
        self.implementation = implementation
        super().__init__(f"Unsupported node implementation '{implementation}'", **kwargs)


# =============================================================================
# Container Runtime Errors
# =============================================================================


class DockerError(RegnetError):
    """Base class for container runtime errors."""


class DockerCommandError(DockerError):
    """Raised when a compose command exits with a non-zero status.

    The message is the command's error output with terminal escape codes
    stripped, so ``str(error)`` is exactly the text the runtime printed.
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        exit_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        self.command = command or []
        self.exit_code = exit_code
        super().__init__(message, **kwargs)


# =============================================================================
# Persistence Errors
# =============================================================================


class PersistenceError(RegnetError):
    """Raised when the networks file cannot be read or written."""


class MigrationError(PersistenceError):
    """Raised when a networks file has an unknown schema version."""

    def __init__(self, message: str, *, version: str | None = None, **kwargs: Any) -> None:
        self.version = version
        context = kwargs.get("context", {})
        if version is not None:
            context["version"] = version
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Node API Errors
# =============================================================================


class NodeServiceError(RegnetError):
    """Base class for errors returned by a node's control API."""


class LightningServiceError(NodeServiceError):
    """Raised when a Lightning implementation's API call fails."""

    def __init__(
        self,
        message: str,
        *,
        implementation: str | None = None,
        node_name: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.implementation = implementation
        context = kwargs.get("context", {})
        if implementation:
            context["implementation"] = implementation
        if node_name:
            context["node"] = node_name
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class BitcoindServiceError(NodeServiceError):
    """Raised when a bitcoind JSON-RPC call fails."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        node_name: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if method:
            context["method"] = method
        if node_name:
            context["node"] = node_name
        kwargs["context"] = context
        super().__init__(message, **kwargs)


class NodeOfflineError(NodeServiceError):
    """Raised when a node does not come online before the wait timeout."""


__all__ = [
    "RegnetError",
    "ValidationError",
    "ConfigurationError",
    "TopologyError",
    "NetworkNotFoundError",
    "NodeNotFoundError",
    "InvalidStatusTransitionError",
    "UnsupportedImplementationError",
    "DockerError",
    "DockerCommandError",
    "PersistenceError",
    "MigrationError",
    "NodeServiceError",
    "LightningServiceError",
    "BitcoindServiceError",
    "NodeOfflineError",
]
