# ==============================================
# CLI — Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Run one of the fixed operation sequences against its store.
#
# COMMANDS:
# ---------
# 1. Run the MongoDB sequence:
#    python -m opsrunner.cli mongo
#    python -m opsrunner.cli mongo --policy best_effort
#
# 2. Run the PostgreSQL sequence (optionally with FDW, replication,
#    event trigger):
#    python -m opsrunner.cli postgres
#    python -m opsrunner.cli postgres --cluster
#
# 3. List a sequence without connecting:
#    python -m opsrunner.cli list mongo
#
# EXIT CODES:
# -----------
#   0  every operation succeeded
#   1  at least one operation failed
#   2  could not connect (or lost the connection)
#
# ==============================================

import argparse
import sys
from typing import List, Optional

from opsrunner.config import AppConfig, get_config
from opsrunner.errors import StoreConnectionError
from opsrunner.operations import mongo_operations, postgres_operations
from opsrunner.runner import FailurePolicy, Operation, OperationRunner
from opsrunner.storage import MongoStore, PostgresStore

EXIT_OK = 0
EXIT_OPERATION_FAILED = 1
EXIT_CONNECTION_FAILED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opsrunner",
        description="Run the weather example operations against MongoDB or PostgreSQL."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    policy_help = "fail_fast stops at the first failure, best_effort keeps going (default: from config)"

    mongo = subparsers.add_parser("mongo", help="Run the MongoDB sequence")
    mongo.add_argument("--policy", choices=[p.value for p in FailurePolicy], help=policy_help)

    postgres = subparsers.add_parser("postgres", help="Run the PostgreSQL sequence")
    postgres.add_argument("--policy", choices=[p.value for p in FailurePolicy], help=policy_help)
    postgres.add_argument(
        "--cluster",
        action="store_true",
        help="Also run FDW, logical replication and event trigger statements"
    )

    list_cmd = subparsers.add_parser("list", help="Print a sequence without running it")
    list_cmd.add_argument("store", choices=["mongo", "postgres"])
    list_cmd.add_argument("--cluster", action="store_true")

    return parser


def _mongo_sequence(config: AppConfig) -> List[Operation]:
    return mongo_operations(
        db_name=config.mongo.database,
        max_await_ms=config.runner.change_stream_max_await_ms
    )


def _postgres_sequence(config: AppConfig, cluster: bool) -> List[Operation]:
    return postgres_operations(include_cluster=cluster or config.runner.include_cluster_sql)


def run_sequence(store, operations: List[Operation], policy: FailurePolicy) -> int:
    """Run and translate the outcome into an exit code."""
    try:
        report = OperationRunner(store, policy).run(operations)
    except StoreConnectionError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_CONNECTION_FAILED

    for error in report.errors:
        print(f"  - {error}", file=sys.stderr)
    return EXIT_OK if report.ok else EXIT_OPERATION_FAILED


def main(argv: Optional[List[str]] = None, config: Optional[AppConfig] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = config or get_config()

    if args.command == "list":
        if args.store == "mongo":
            operations = _mongo_sequence(config)
        else:
            operations = _postgres_sequence(config, args.cluster)
        for index, operation in enumerate(operations, start=1):
            print(f"{index:>2}. {operation.name}")
        return EXIT_OK

    try:
        policy = FailurePolicy.parse(args.policy or config.runner.failure_policy)
    except ValueError as e:
        parser.error(str(e))

    if args.command == "mongo":
        return run_sequence(MongoStore.from_config(config.mongo), _mongo_sequence(config), policy)
    return run_sequence(
        PostgresStore.from_config(config.postgres),
        _postgres_sequence(config, args.cluster),
        policy
    )


if __name__ == "__main__":
    sys.exit(main())
