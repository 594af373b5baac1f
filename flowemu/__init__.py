"""Chain-state storage for a local blockchain emulator: data model, CBOR encoding, and
in-memory, SQLite and Redis stores."""

__version__ = "0.1.0"

__all__ = [
    "encoding",
    "errors",
    "factory",
    "memstore",
    "model",
    "redis_store",
    "reporting",
    "results",
    "sqlite_store",
    "store",
]