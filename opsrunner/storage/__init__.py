# ==============================================
# STORAGE (MongoDB + PostgreSQL)
# ==============================================
#
# This package owns the connections to the external stores.
# Operations receive a store as an argument; nothing here is global.
#
# Modules:
# --------
# - mongo_store.py     → MongoDB connection and handles
# - postgres_store.py  → PostgreSQL connection and SQL execution
# - change_stream.py   → Cancellable change-stream subscription
#
# ==============================================

from .mongo_store import MongoStore
from .postgres_store import PostgresStore
from .change_stream import ChangeSubscription

__all__ = [
    "MongoStore",
    "PostgresStore",
    "ChangeSubscription"
]
