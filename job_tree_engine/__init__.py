"""
job_tree_engine package - lazily loaded hierarchical job tree

Expose the tree controller and the in-process query service.
"""
from .controller import JobsTreeController
from .services.ibis_service import IbisJobsService

__all__ = ["JobsTreeController", "IbisJobsService"]
