# ==============================================
# Operation (Data Classes)
# ==============================================
#
# PURPOSE:
#   Data classes describing WHAT the runner executes and WHAT it
#   reports back. The runner itself lives in runner.py.
#
# ENUMS:
# ------
# - FailurePolicy(Enum): FAIL_FAST, BEST_EFFORT
#     What the runner does after an operation fails.
#
# - OutcomeStatus(Enum): SUCCEEDED, FAILED, SKIPPED
#
# CLASSES:
# --------
# - Operation (frozen dataclass)
#     name: str
#     func: Callable[[store, OperationContext], Any]
#
# - OperationContext
#     Handed to every operation of one run. Owns background resources
#     (change subscriptions) opened by operations; the runner closes
#     them before releasing the store.
#
# - OperationOutcome (dataclass)
#     name, status, error, elapsed_seconds
#
# - RunReport (dataclass)
#     policy, outcomes (in execution order), aborted
#     Helpers: succeeded / failed / skipped / errors / ok,
#              raise_for_errors(), summary(), to_dict()
#
# ==============================================

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from opsrunner.errors import OperationError, RunFailedError


class FailurePolicy(Enum):
    """
    What happens after an operation fails.

    - FAIL_FAST: stop, the remaining operations are skipped
    - BEST_EFFORT: keep going, every failure is collected
    """
    FAIL_FAST = "fail_fast"
    BEST_EFFORT = "best_effort"

    @classmethod
    def parse(cls, value: "str | FailurePolicy") -> "FailurePolicy":
        """Accept an enum member or its value ("fail_fast", "best-effort", ...)."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise ValueError(f"Unknown failure policy {value!r} (expected one of: {choices})") from None


class OutcomeStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Operation:
    """A named unit of remote work. Position in the sequence is its only identity."""
    name: str
    func: Callable[[Any, "OperationContext"], Any]

    def __call__(self, store, context: "OperationContext") -> Any:
        return self.func(store, context)


class OperationContext:
    """Per-run state shared with operations: the resources they leave open."""

    def __init__(self):
        self._resources: list = []

    def track(self, resource):
        """
        Hand a background resource to the runner.

        The resource must have a close() or cancel() method. It is
        released when the run ends, before the store is disconnected.

        Returns:
            The same resource, so callers can write `sub = context.track(sub)`.

        Raises:
            TypeError: the resource has neither cancel() nor close()
        """
        if not (callable(getattr(resource, "cancel", None)) or callable(getattr(resource, "close", None))):
            raise TypeError(f"{type(resource).__name__} has no cancel() or close() method")
        self._resources.append(resource)
        return resource

    @property
    def resources(self) -> list:
        return list(self._resources)

    def close(self) -> List[Exception]:
        """
        Release tracked resources, newest first.

        Returns:
            Errors raised while releasing (every resource is still attempted)
        """
        errors: List[Exception] = []
        while self._resources:
            resource = self._resources.pop()
            try:
                release = getattr(resource, "cancel", None) or getattr(resource, "close")
                release()
            except Exception as e:
                errors.append(e)
        return errors


@dataclass
class OperationOutcome:
    name: str
    status: OutcomeStatus
    error: Optional[OperationError] = None
    elapsed_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "error": str(self.error) if self.error else None,
            "elapsed_seconds": round(self.elapsed_seconds, 4)
        }


@dataclass
class RunReport:
    policy: FailurePolicy
    outcomes: List[OperationOutcome] = field(default_factory=list)
    aborted: bool = False

    def _names(self, status: OutcomeStatus) -> List[str]:
        return [o.name for o in self.outcomes if o.status is status]

    @property
    def succeeded(self) -> List[str]:
        return self._names(OutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> List[str]:
        return self._names(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> List[str]:
        return self._names(OutcomeStatus.SKIPPED)

    @property
    def errors(self) -> List[OperationError]:
        return [o.error for o in self.outcomes if o.error is not None]

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise RunFailedError if any operation failed."""
        if not self.ok:
            raise RunFailedError(self.errors)

    def summary(self) -> Dict[str, Any]:
        return {
            "policy": self.policy.value,
            "total": len(self.outcomes),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "aborted": self.aborted
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.summary(),
            "outcomes": [o.to_dict() for o in self.outcomes]
        }
