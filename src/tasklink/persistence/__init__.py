"""Sync-record persistence."""

from tasklink.persistence.metadata_store import (
    InMemoryBackend,
    JsonFileBackend,
    MetadataStore,
    RecordBackend,
    RecordCheck,
    output_metadata_path,
)

__all__ = [
    "InMemoryBackend",
    "JsonFileBackend",
    "MetadataStore",
    "RecordBackend",
    "RecordCheck",
    "output_metadata_path",
]
