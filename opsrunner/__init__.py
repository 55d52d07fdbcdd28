# ==============================================
# Database Operation Runner
# ==============================================
#
# Package Structure:
#
# opsrunner/
# ├── runner/          # Operation, RunReport, OperationRunner
# ├── storage/         # MongoStore, PostgresStore, ChangeSubscription
# ├── operations/      # The fixed MongoDB / PostgreSQL sequences
# ├── config.py        # Configuration management
# ├── errors.py        # Error taxonomy
# └── cli.py           # Command line entry point
#
# ==============================================

__version__ = "0.1.0"
