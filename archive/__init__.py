"""Conversation archival: compaction service and its daily job."""

from .service import ArchiveService, parse_extraction
from .job import ArchiveJob, ArchiveRunSummary

__all__ = [
    "ArchiveService",
    "parse_extraction",
    "ArchiveJob",
    "ArchiveRunSummary",
]
