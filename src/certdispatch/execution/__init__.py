"""Action queue implementations.

- LocalJobQueue: bounded FIFO drained by worker threads
- MemoryJobQueue: records jobs, runs them on demand (testing)
"""

from .jobqueue import Job, JobQueue, LocalJobQueue, MemoryJobQueue, QueueStats, run_job

__all__ = ["Job", "JobQueue", "LocalJobQueue", "MemoryJobQueue", "QueueStats", "run_job"]
