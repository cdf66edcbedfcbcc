"""
errors.py - Error taxonomy for the lazy job tree
"""
from typing import List, Optional


class JobTreeError(Exception):
    """Base class for all job tree errors"""


class MalformedRowId(JobTreeError, ValueError):
    """Raised when a row id cannot be decoded into type:value segments"""

    def __init__(self, row_id: str, reason: str):
        self.row_id = row_id
        self.reason = reason
        super().__init__(f"Malformed row id {row_id!r}: {reason}")


class MergeTargetNotFound(JobTreeError):
    """The path given to the merge engine does not lead to a group row"""

    def __init__(self, location: List[str], missing: Optional[str] = None):
        self.location = list(location)
        self.missing = missing
        super().__init__(f"Could not find row {missing!r} while merging at {self.location}")


class FetchFailed(JobTreeError):
    """A query service call failed"""

    def __init__(self, description: str, cause: Optional[BaseException] = None):
        self.description = description
        self.cause = cause
        super().__init__(f"Fetch failed for {description}: {cause}")


class StaleResultDiscarded(JobTreeError):
    """A completed fetch no longer matches the current table state"""
