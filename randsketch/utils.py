"""Utility functions for tests and experiments."""
import os
import time
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import numpy as np
from tqdm import tqdm

from .base import Layout, Op, dims_before_op
from .blas import matrix_view, op_view
from .dense_fill import DenseDistName
from .operators import DenseDist, DenseSkOp
from .random_gen import CounterState


def to_explicit_buffer(S, layout: Layout = Layout.ColMajor) -> np.ndarray:
    """Flat copy of the operator S as a dense matrix stored in `layout`."""
    order = 'F' if layout == Layout.ColMajor else 'C'
    return np.ravel(S.to_dense(), order=order).copy()


def genmat(
    n_rows: int,
    n_cols: int,
    seed=0,
    layout: Layout = Layout.ColMajor
) -> Tuple[np.ndarray, CounterState]:
    """
    Reproducible test matrix with entries uniform over [-1, 1].

    Returns:
        Tuple of (flat buffer in `layout`, next_state)
    """
    S = DenseSkOp(DenseDist(n_rows, n_cols, DenseDistName.Uniform), seed)
    return to_explicit_buffer(S, layout), S.next_state


def _bound(alpha, beta, inner: int, left, right, B0) -> np.ndarray:
    eps = np.finfo(np.float64).eps
    E = abs(alpha) * inner * 2 * eps * (np.abs(left) @ np.abs(right))
    if beta != 0:
        E = E + abs(beta) * eps * np.abs(B0)
    return E


def reference_left_apply(
    layout, op_s, op_a, d, n, m, alpha, S, ro_s, co_s, A, lda, beta, B, ldb
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Explicit-matrix reference for B := alpha * op(submat(S)) @ op(A) + beta * B.

    B is not modified.

    Returns:
        Tuple of (expected d x n result, componentwise error bound)
    """
    rows_s, cols_s = dims_before_op(d, m, op_s)
    sub = S.to_dense()[ro_s:ro_s + rows_s, co_s:co_s + cols_s]
    S_op = sub.T if op_s == Op.Trans else sub
    A_op = op_view(A, layout, op_a, m, n, lda)
    B0 = matrix_view(B, layout, d, n, ldb).copy()
    expected = alpha * (S_op @ A_op)
    if beta != 0:
        expected = expected + beta * B0
    return expected, _bound(alpha, beta, m, S_op, A_op, B0)


def reference_right_apply(
    layout, op_a, op_s, m, d, n, alpha, A, lda, S, ro_s, co_s, beta, B, ldb
) -> Tuple[np.ndarray, np.ndarray]:
    """Explicit-matrix reference for B := alpha * op(A) @ op(submat(S)) + beta * B."""
    rows_s, cols_s = dims_before_op(n, d, op_s)
    sub = S.to_dense()[ro_s:ro_s + rows_s, co_s:co_s + cols_s]
    S_op = sub.T if op_s == Op.Trans else sub
    A_op = op_view(A, layout, op_a, m, n, lda)
    B0 = matrix_view(B, layout, m, d, ldb).copy()
    expected = alpha * (A_op @ S_op)
    if beta != 0:
        expected = expected + beta * B0
    return expected, _bound(alpha, beta, n, A_op, S_op, B0)


def time_repeats(fn: Callable[[], object], repeats: int, desc: str = None) -> Tuple[List[float], object]:
    """
    Call `fn` `repeats` times.

    Returns:
        Tuple of (wall-clock seconds per call, result of the last call)
    """
    timings = []
    result = None
    for _ in tqdm(range(repeats), desc=desc, unit="run", leave=False):
        start = time.perf_counter()
        result = fn()
        timings.append(time.perf_counter() - start)
    return timings, result


def save_timing_plot(
    thread_counts: List[int],
    results: Dict[str, List[float]],
    title: str,
    output_dir: str,
    filename: str = "timings.png"
) -> str:
    """
    Create and save a plot of median run time against thread count.

    Args:
        thread_counts: Thread counts on the x axis
        results: Dictionary mapping a phase name to one time per thread count
        title: Plot title
        output_dir: Output directory
        filename: File name of the plot

    Returns:
        Path to saved plot file
    """
    import matplotlib.pyplot as plt

    plt.figure(figsize=(10, 6))

    for phase, seconds in results.items():
        plt.plot(thread_counts, seconds, marker='o', label=phase)

    plt.title(title)
    plt.xlabel("Threads")
    plt.ylabel("Median time (s)")
    plt.xticks(thread_counts)
    plt.legend()
    plt.grid(True)

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    filepath = os.path.join(output_dir, filename)

    plt.savefig(filepath, dpi=150, bbox_inches='tight')
    plt.close()

    return filepath
