# ==============================================
# RUNNER
# ==============================================
#
# This package sequences named operations against one store.
#
# Modules:
# --------
# - operation.py  → Operation, OperationContext, RunReport, FailurePolicy
# - runner.py     → OperationRunner and run()
#
# ==============================================

from .operation import (
    FailurePolicy,
    Operation,
    OperationContext,
    OperationOutcome,
    OutcomeStatus,
    RunReport,
)
from .runner import OperationRunner, run

__all__ = [
    "FailurePolicy",
    "Operation",
    "OperationContext",
    "OperationOutcome",
    "OutcomeStatus",
    "RunReport",
    "OperationRunner",
    "run"
]
