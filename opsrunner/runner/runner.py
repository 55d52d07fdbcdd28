# ==============================================
# OperationRunner
# ==============================================
#
# PURPOSE:
#   Owns one store connection and executes a fixed, ordered list of
#   Operations against it, one at a time.
#
# HOW A RUN GOES:
#
#   connect ──► op 1 ──► op 2 ──► ... ──► op N ──► close resources ──► disconnect
#      │          │ fails                                                  ▲
#      │          ├─ FAIL_FAST   → remaining ops SKIPPED ──────────────────┤
#      │          ├─ BEST_EFFORT → record, continue                        │
#      │          └─ connection lost → StoreConnectionError (fatal) ───────┤
#      └─ fails → StoreConnectionError (fatal) ────────────────────────────┘
#
#   disconnect() is called exactly once on every path.
#
# STORE INTERFACE:
# ----------------
#   The runner only needs:
#   - store.name: str
#   - store.connect() -> None
#   - store.disconnect() -> None
#   - store.is_connection_error(exc) -> bool
#
# FUNCTION:
# ---------
# - run(store, operations, policy=FailurePolicy.FAIL_FAST) -> RunReport
#
# ==============================================

import time
from typing import Iterable, Optional

from opsrunner.errors import OperationError, StoreConnectionError
from opsrunner.runner.operation import (
    FailurePolicy,
    Operation,
    OperationContext,
    OperationOutcome,
    OutcomeStatus,
    RunReport,
)


class OperationRunner:
    """Executes Operations strictly in order against a single store."""

    def __init__(self, store, policy: FailurePolicy = FailurePolicy.FAIL_FAST):
        self.store = store
        self.policy = FailurePolicy.parse(policy)

    def run(self, operations: Iterable[Operation]) -> RunReport:
        """
        Connect, run every operation in order, release everything.

        Args:
            operations: Ordered operations. Consumed once.

        Returns:
            RunReport with one outcome per operation

        Raises:
            StoreConnectionError: the store could not be reached, or the
                connection was lost while an operation was running
        """
        operations = list(operations)
        report = RunReport(policy=self.policy)
        context = OperationContext()

        try:
            self._connect()
            print(f"▶ Running {len(operations)} operation(s) against {self.store.name} "
                  f"({self.policy.value})")

            for index, operation in enumerate(operations):
                outcome = self._run_one(operation, context)
                report.outcomes.append(outcome)

                if outcome.status is OutcomeStatus.FAILED and self.policy is FailurePolicy.FAIL_FAST:
                    report.aborted = True
                    for remaining in operations[index + 1:]:
                        report.outcomes.append(
                            OperationOutcome(name=remaining.name, status=OutcomeStatus.SKIPPED)
                        )
                    print(f"⚠ Stopping after '{operation.name}', "
                          f"{len(operations) - index - 1} operation(s) skipped")
                    break
        finally:
            try:
                for error in context.close():
                    print(f"⚠ Failed to release background resource: {error}")
            finally:
                self.store.disconnect()

        self._print_summary(report)
        return report

    def _connect(self) -> None:
        try:
            self.store.connect()
        except StoreConnectionError:
            raise
        except Exception as e:
            raise StoreConnectionError(
                f"Could not connect to {self.store.name}: {e}",
                {"store": self.store.name, "error_type": type(e).__name__}
            ) from e

    def _run_one(self, operation: Operation, context: OperationContext) -> OperationOutcome:
        started = time.perf_counter()
        try:
            operation(self.store, context)
        except StoreConnectionError:
            print(f"✗ {operation.name}: lost connection to {self.store.name}")
            raise
        except Exception as e:
            elapsed = time.perf_counter() - started
            if self.store.is_connection_error(e):
                print(f"✗ {operation.name}: lost connection to {self.store.name}")
                raise StoreConnectionError(
                    f"Lost connection to {self.store.name} during {operation.name}: {e}",
                    {"store": self.store.name, "operation": operation.name}
                ) from e
            error = OperationError(operation.name, e)
            print(f"✗ {error}")
            return OperationOutcome(
                name=operation.name,
                status=OutcomeStatus.FAILED,
                error=error,
                elapsed_seconds=elapsed
            )

        elapsed = time.perf_counter() - started
        print(f"✓ {operation.name} ({elapsed:.2f}s)")
        return OperationOutcome(
            name=operation.name,
            status=OutcomeStatus.SUCCEEDED,
            elapsed_seconds=elapsed
        )

    def _print_summary(self, report: RunReport) -> None:
        summary = report.summary()
        print(f"\n📊 Summary: {summary['succeeded']} succeeded, "
              f"{summary['failed']} failed, {summary['skipped']} skipped")


def run(store, operations: Iterable[Operation],
        policy: Optional[FailurePolicy] = None) -> RunReport:
    """Run `operations` against `store` with a one-off OperationRunner."""
    return OperationRunner(store, policy or FailurePolicy.FAIL_FAST).run(operations)
