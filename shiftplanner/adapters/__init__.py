"""
Adapters layer - Storage backends (SQLAlchemy and in-memory) and sample data.
"""

from .memory_store import MemoryScheduleStore
from .sample_data import load_sample_data, seed
from .sql_store import SqlScheduleStore, create_engine_for

__all__ = [
    "MemoryScheduleStore",
    "SqlScheduleStore",
    "create_engine_for",
    "load_sample_data",
    "seed",
]
