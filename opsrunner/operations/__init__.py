# ==============================================
# OPERATIONS
# ==============================================
#
# The fixed operation sequences, one module per store.
#
# Modules:
# --------
# - mongo_weather.py     → document-store sequence (mongo_operations)
# - postgres_weather.py  → relational-store sequence (postgres_operations)
#
# ==============================================

from .mongo_weather import mongo_operations
from .postgres_weather import postgres_operations

__all__ = [
    "mongo_operations",
    "postgres_operations"
]
