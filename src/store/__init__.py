from __future__ import annotations

from .base import AnyOf, Contains, Eq, Filter, IsNull, Lte, RecordStore, StoreError
from .frame_store import FrameRecordStore
from .http import PoliteHttpClient
from .postgrest import PostgrestRecordStore

__all__ = [
    "AnyOf",
    "Contains",
    "Eq",
    "Filter",
    "FrameRecordStore",
    "IsNull",
    "Lte",
    "PoliteHttpClient",
    "PostgrestRecordStore",
    "RecordStore",
    "StoreError",
]
