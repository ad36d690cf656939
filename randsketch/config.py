"""Thread configuration and fork-join helpers for the sampling engines."""
import os
import warnings
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Callable, List, Tuple

ENV_NUM_THREADS = 'RANDSKETCH_NUM_THREADS'


def _threads_from_env() -> int:
    raw = os.environ.get(ENV_NUM_THREADS)
    if raw is None:
        return os.cpu_count() or 1
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1:
        warnings.warn(
            f"{ENV_NUM_THREADS}={raw!r} is not a positive integer. "
            "Falling back to a single thread."
        )
        return 1
    return value


class ParallelConfig:
    """Global worker configuration."""
    _num_threads = None

    @classmethod
    def set_num_threads(cls, n: int):
        """Set the number of workers used by the fill and sampling engines."""
        if int(n) < 1:
            raise ValueError(f"Number of threads must be positive, got {n}.")
        cls._num_threads = int(n)

    @classmethod
    def get_num_threads(cls) -> int:
        if cls._num_threads is None:
            cls._num_threads = _threads_from_env()
        return cls._num_threads

    @classmethod
    def reset(cls):
        """Forget any explicit setting and re-read the environment on next use."""
        cls._num_threads = None

    @classmethod
    def is_parallel(cls) -> bool:
        return cls.get_num_threads() > 1


@contextmanager
def num_threads(n: int):
    """Temporarily run the engines with `n` workers."""
    previous = ParallelConfig._num_threads
    ParallelConfig.set_num_threads(n)
    try:
        yield
    finally:
        ParallelConfig._num_threads = previous


def partition(n_items: int, n_chunks: int, min_chunk: int = 1) -> List[Tuple[int, int]]:
    """
    Split range(n_items) into at most `n_chunks` contiguous, disjoint ranges.

    Args:
        n_items: Number of items to split.
        n_chunks: Upper bound on the number of ranges.
        min_chunk: Smallest number of items per range (except possibly the last).

    Returns:
        List of (start, stop) pairs covering range(n_items) in order.
    """
    if n_items <= 0:
        return []
    n_chunks = max(1, min(n_chunks, -(-n_items // max(min_chunk, 1))))
    base, extra = divmod(n_items, n_chunks)
    bounds = []
    start = 0
    for c in range(n_chunks):
        stop = start + base + (1 if c < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


def parallel_for(
    n_items: int,
    body: Callable[[int, int], None],
    min_chunk: int = 1
) -> None:
    """
    Run body(start, stop) over disjoint chunks of range(n_items).

    Chunks run on a thread pool when more than one worker is configured.
    Workers must only write to locations owned by their chunk.
    """
    workers = ParallelConfig.get_num_threads()
    chunks = partition(n_items, workers, min_chunk)
    if len(chunks) <= 1:
        for start, stop in chunks:
            body(start, stop)
        return
    with ThreadPoolExecutor(max_workers=len(chunks)) as pool:
        futures = [pool.submit(body, start, stop) for start, stop in chunks]
        for future in futures:
            future.result()
