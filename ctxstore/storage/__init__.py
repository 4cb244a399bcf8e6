from ctxstore.storage.persistence import PersistenceManager, WriteResult
from ctxstore.storage.pool import ConnectionPool, PoolHealth, PoolState

__all__ = [
    "ConnectionPool",
    "PersistenceManager",
    "PoolHealth",
    "PoolState",
    "WriteResult",
]
