"""
Adapters layer - record storage and the JSON data file format.
"""

from .memory_store import MemoryStore
from .records import FulfillmentRecord, OrderRecord, ProviderRecord, RecordFile

__all__ = ["FulfillmentRecord", "MemoryStore", "OrderRecord", "ProviderRecord", "RecordFile"]
