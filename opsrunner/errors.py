# ==============================================
# Errors
# ==============================================
#
# PURPOSE:
#   One error taxonomy for both stores.
#
#   OpsRunnerError
#   ├── StoreConnectionError      → fatal: cannot reach / authenticate,
#   │   │                           or the connection dropped mid-run
#   │   └── StoreNotConnectedError → a store handle used before connect()
#   ├── OperationError            → one named operation failed
#   └── RunFailedError            → a finished run had failed operations
#
#   Every exception carries a `context` dict with details that help
#   diagnose the failure (store name, operation name, error type, ...).
#
# ==============================================

from typing import Any, Dict, List, Optional


class OpsRunnerError(Exception):
    """Base class for everything this package raises."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class StoreConnectionError(OpsRunnerError):
    """Raised when a store cannot be reached, authenticated against, or is lost.

    Always fatal: the runner stops, releases the store and re-raises.
    """


class StoreNotConnectedError(StoreConnectionError):
    """Raised when a store handle is requested before connect()."""

    def __init__(self, store_name: str):
        super().__init__(
            f"Not connected to {store_name}.",
            {"store": store_name}
        )


class OperationError(OpsRunnerError):
    """Raised when a single operation fails.

    Attributes:
        operation: Name of the operation that failed
        cause: The underlying exception raised by the driver or the operation
    """

    def __init__(self, operation: str, cause: BaseException):
        super().__init__(
            f"{operation} failed: {cause}",
            {
                "operation": operation,
                "error_type": type(cause).__name__,
            }
        )
        self.operation = operation
        self.cause = cause
        self.__cause__ = cause


class RunFailedError(OpsRunnerError):
    """Raised by RunReport.raise_for_errors() when any operation failed."""

    def __init__(self, errors: List[OperationError]):
        names = ", ".join(error.operation for error in errors)
        super().__init__(
            f"{len(errors)} operation(s) failed: {names}",
            {"failed_operations": [error.operation for error in errors]}
        )
        self.errors = errors
