# v0_mcp/resources/__init__.py
from .session_file_store import (
    FileStats,
    NormalizedFile,
    SessionFile,
    SessionFileBundle,
    SessionFileStore,
    build_file_uri,
    build_file_id,
    hash_content,
    language_from_file_name,
    normalize_file,
    parse_file_uri,
    session_file_store,
)

__all__ = [
    "FileStats",
    "NormalizedFile",
    "SessionFile",
    "SessionFileBundle",
    "SessionFileStore",
    "build_file_uri",
    "build_file_id",
    "hash_content",
    "language_from_file_name",
    "normalize_file",
    "parse_file_uri",
    "session_file_store",
]
