"""
Deterministic fake jobs for tests, demos and the development server.
"""
from typing import List

import pyarrow as pa

from job_tree_engine.types.job_models import Job

JOB_STATES = ["Failed", "Queued", "Pending", "Running", "Succeeded", "Cancelled"]

JOBS_SCHEMA = pa.schema([
    ("jobId", pa.string()),
    ("queue", pa.string()),
    ("jobSet", pa.string()),
    ("state", pa.string()),
    ("cpu", pa.int64()),
    ("memory", pa.string()),
    ("ephemeralStorage", pa.string()),
])


def make_test_jobs(num_jobs: int, state_offset: int = 0, num_queues: int = 10, num_job_sets: int = 100) -> List[Job]:
    """Jobs cycle through queues, job sets and states so group sizes are predictable."""
    return [
        Job(
            job_id=str(i),
            queue=f"queue-{i % num_queues + 1}",
            job_set=f"job-set-{i % num_job_sets + 1}",
            state=JOB_STATES[(i + state_offset) % len(JOB_STATES)],
            cpu=4000,
            memory="24Gi",
            ephemeral_storage="32Gi",
        )
        for i in range(num_jobs)
    ]


def jobs_to_arrow(jobs: List[Job]) -> pa.Table:
    return pa.Table.from_pylist([job.to_dict() for job in jobs], schema=JOBS_SCHEMA)
