"""
Chunk-parallel execution and global reductions for the hydro cycle.

Point, zone and side index ranges are partitioned into contiguous chunks.
All chunks of a phase are independent, so they can be handed to a thread
pool; collecting every result before returning makes each call a phase
barrier. The corrector runs as a single unit of work on its own task pool
so that it may itself fan out over the chunk pool without deadlocking.
"""

import math
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Callable, Iterable, List

from .timestep import TimeStep


class ChunkExecutor:
    """
    Runs per-chunk kernels and asynchronous tasks.

    Attributes:
        num_workers (int): Number of chunk worker threads (1 = serial)
    """

    def __init__(self, num_workers: int = 1):
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")
        self.num_workers = num_workers
        self._chunk_pool = None
        if num_workers > 1:
            self._chunk_pool = ThreadPoolExecutor(max_workers=num_workers,
                                                  thread_name_prefix="chunk")
        # started on the first submit_task
        self._task_pool = None

    def map_chunks(self, func: Callable, num_chunks: int, *args) -> list:
        """
        Call ``func(chunk, *args)`` for every chunk and wait for all of them.

        Returns:
            Per-chunk results in chunk order
        """
        if self._chunk_pool is None:
            return [func(ch, *args) for ch in range(num_chunks)]

        futures = [self._chunk_pool.submit(func, ch, *args)
                   for ch in range(num_chunks)]
        # result() re-raises a worker failure in the caller
        return [f.result() for f in futures]

    def submit_task(self, func: Callable, *args) -> Future:
        """Dispatch a single asynchronous unit of work."""
        if self._task_pool is None:
            self._task_pool = ThreadPoolExecutor(max_workers=1,
                                                 thread_name_prefix="task")
        return self._task_pool.submit(func, *args)

    @property
    def active(self) -> bool:
        """True while any worker pool is running."""
        return self._chunk_pool is not None or self._task_pool is not None

    def shutdown(self):
        """Stop the worker pools; safe to call more than once."""
        if self._chunk_pool is not None:
            self._chunk_pool.shutdown(wait=True)
            self._chunk_pool = None
        if self._task_pool is not None:
            self._task_pool.shutdown(wait=True)
            self._task_pool = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
        return False


def global_sum(partials: Iterable[float]) -> float:
    """
    Sum chunk partial results.

    ``math.fsum`` is exactly rounded, so the result does not depend on the
    order in which chunks finished.
    """
    return math.fsum(partials)


def global_min_timestep(candidates: List[TimeStep]) -> TimeStep:
    """
    Merge per-chunk time step recommendations.

    The smallest dt wins; on a tie the earlier chunk is kept, which makes
    the merge deterministic and safe to repeat.
    """
    recommend = TimeStep.unlimited()
    for candidate in candidates:
        if candidate.dt < recommend.dt:
            recommend = candidate
    return recommend
