"""PoolGuard - pool chemical compliance checks with an offline sync queue."""

__version__ = "0.1.0"
