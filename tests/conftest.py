# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests. No live database is needed:
# every store is an in-memory fake from tests/fakes.py.
#
# ==============================================

import pytest

from opsrunner.config import reset_config
from opsrunner.runner import Operation, OperationContext

from tests.fakes import FakeMongoStore, FakePostgresStore


@pytest.fixture
def mongo_store():
    """A fake MongoDB store that records calls."""
    return FakeMongoStore()


@pytest.fixture
def postgres_store():
    """A fake PostgreSQL store that records statements."""
    return FakePostgresStore()


@pytest.fixture
def context():
    context = OperationContext()
    yield context
    context.close()


@pytest.fixture
def make_op():
    """
    Build an Operation that logs start/end into `log`.

    make_op(name, log, fail=None): `fail` is raised between start and end.
    """
    def _make(name: str, log: list, fail: Exception = None) -> Operation:
        def func(store, context):
            log.append(f"start:{name}")
            if fail is not None:
                raise fail
            log.append(f"end:{name}")
            return name
        return Operation(name, func)
    return _make


@pytest.fixture(autouse=True)
def fresh_config():
    """Never leak the config singleton between tests."""
    reset_config()
    yield
    reset_config()
