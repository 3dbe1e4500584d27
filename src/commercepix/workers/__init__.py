"""Background workers for async processing tasks."""

from commercepix.workers.generation_worker import (
    process_batch,
    process_single_job,
    recover_orphaned_jobs,
    run_generation_worker,
)

__all__ = [
    "run_generation_worker",
    "process_batch",
    "process_single_job",
    "recover_orphaned_jobs",
]
