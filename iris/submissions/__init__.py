"""Iris submissions package — repository, local cache and fallback samples."""

from iris.submissions.repository import (
    SubmissionRepository,
    first_name,
    formatted_name,
    last_name,
    search_by_name,
)
from iris.submissions.cache import CacheResult, SubmissionCache, SubmissionService
from iris.submissions.samples import sample_submissions

__all__ = [
    "CacheResult",
    "SubmissionCache",
    "SubmissionRepository",
    "SubmissionService",
    "first_name",
    "formatted_name",
    "last_name",
    "sample_submissions",
    "search_by_name",
]
