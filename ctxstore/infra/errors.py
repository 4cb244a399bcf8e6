"""Exception hierarchy for ctxstore.

All application-specific exceptions inherit from ContextStoreError,
which carries an error code for protocol error mapping. Router-level
errors (unknown tool, bad arguments) are raised to the transport;
everything raised below a handler is turned into an error envelope.
"""

from __future__ import annotations

from typing import Any


class ContextStoreError(Exception):
    """Base exception for all ctxstore errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class GatewayError(ContextStoreError):
    """Protocol-level errors in the router or a transport adapter."""

    def __init__(self, message: str, *, code: str = "GATEWAY_ERROR") -> None:
        super().__init__(message, code=code)


class UnknownToolError(GatewayError):
    """Requested tool is not in the registry."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}", code="UNKNOWN_TOOL")
        self.tool_name = tool_name


class InvalidArgumentsError(GatewayError):
    """Tool arguments failed validation.

    problems: one dict per offending field with keys field, problem, message.
    """

    def __init__(self, tool_name: str, problems: list[dict[str, Any]]) -> None:
        details = "; ".join(f"{p['field']}: {p['message']}" for p in problems)
        super().__init__(
            f"Invalid arguments for tool '{tool_name}': {details}",
            code="INVALID_ARGUMENTS",
        )
        self.tool_name = tool_name
        self.problems = problems


class PersistenceError(ContextStoreError):
    """A query failed in the relational engine."""

    def __init__(self, message: str, *, code: str = "QUERY_FAILED") -> None:
        super().__init__(message, code=code)


class ConstraintViolationError(PersistenceError):
    """The engine rejected a write because of a constraint."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONSTRAINT_VIOLATION")


class RecordNotFoundError(PersistenceError):
    """An update-in-place targeted a natural key with no row."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="NOT_FOUND")


class PoolError(ContextStoreError):
    """Errors raised by the connection pool."""

    def __init__(self, message: str, *, code: str = "POOL_ERROR") -> None:
        super().__init__(message, code=code)


class ConnectionAcquisitionTimeout(PoolError):
    """No connection became available within the acquisition timeout."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(
            f"Timed out after {timeout_s}s waiting for a database connection",
            code="POOL_TIMEOUT",
        )
        self.timeout_s = timeout_s


class PoolClosedError(PoolError):
    """Acquisition attempted while the pool is not open."""

    def __init__(self, state: str) -> None:
        super().__init__(
            f"Connection pool is not accepting acquisitions (state: {state})",
            code="POOL_CLOSED",
        )
        self.state = state


class PoolFatalError(PoolError):
    """Pool could not be recovered; the service cannot serve requests reliably."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="POOL_FATAL")
