"""I/O utilities for JSON-safe match payloads."""

from src.io.serialization import frame_to_records, jsonable, write_json_atomic

__all__ = ["frame_to_records", "jsonable", "write_json_atomic"]
