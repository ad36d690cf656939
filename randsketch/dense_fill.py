"""
Dense fill engine.

Matrices are generated from a row-major perspective: entry (i, j) of an
implicit parent with `n_cols` columns has linear address i * n_cols + j, and
the value stored there is word (address % 4) of the Philox block generated at
seed.advance(address // 4), after a distribution-specific transform. Because
each value depends only on its own address, any sub-block of the parent can
be generated on its own, in any row order and with any number of workers.
"""
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np

from .base import MajorAxis, Layout, require
from .blas import matrix_view
from .config import parallel_for
from .random_gen import (
    WORDS_PER_BLOCK, CounterState, as_state, boxmul, generate_blocks, uneg11
)

Transform = Callable[[np.ndarray], np.ndarray]

# Upper bound on the number of entries generated per vectorised batch.
_BATCH_ENTRIES = 1 << 18


class DenseDistName(Enum):
    """Distribution of the i.i.d. entries of a dense sketching operator."""
    # mean 0, standard deviation 1
    Gaussian = 'G'
    # uniform over [-1, 1]
    Uniform = 'U'
    # entries are defined only by a user-provided buffer
    BlackBox = 'B'


def transform_for(family: DenseDistName) -> Transform:
    """Word-to-scalar transform used to sample entries of `family`."""
    if family == DenseDistName.Gaussian:
        return boxmul
    if family == DenseDistName.Uniform:
        return uneg11
    if family == DenseDistName.BlackBox:
        raise ValueError("The BlackBox distribution has no generation rule; supply a buffer instead.")
    raise RuntimeError(f"Unrecognized distribution: {family!r}")


def blocks_for(n_elements: int) -> int:
    """Number of generator blocks consumed by `n_elements` entries."""
    return -(-int(n_elements) // WORDS_PER_BLOCK)


def fill_rsubmat(
    n_cols: int,
    smat: np.ndarray,
    n_srows: int,
    n_scols: int,
    ptr: int,
    seed,
    transform: Transform,
    lds: Optional[int] = None,
    n_rows: Optional[int] = None
) -> CounterState:
    """
    Fill an n_srows x n_scols submatrix of a row-major random matrix.

    Args:
        n_cols: Number of columns in the implicit parent matrix.
        smat: Flat output buffer; entry (r, c) goes to smat[r * lds + c].
        n_srows: Number of rows in the submatrix.
        n_scols: Number of columns in the submatrix.
        ptr: Linear address of the submatrix's first entry within the parent.
        seed: CounterState (or integer key) that generates the parent.
        transform: Maps (N, 4) raw words to (N, 4) scalars.
        lds: Leading dimension of `smat` (defaults to n_scols).
        n_rows: Number of rows in the parent. Defaults to the smallest parent
            that contains the submatrix.

    Returns:
        The state that should seed the next independent draw after the parent.
    """
    require(n_cols > 0, f"n_cols must be positive, got {n_cols}.")
    require(n_srows > 0 and n_scols > 0,
            f"Submatrix dimensions must be positive, got {n_srows} x {n_scols}.")
    require(ptr >= 0, f"ptr must be nonnegative, got {ptr}.")
    require(ptr % n_cols + n_scols <= n_cols,
            f"A submatrix with {n_scols} columns starting at column {ptr % n_cols} "
            f"does not fit in a parent with {n_cols} columns.")
    lds = n_scols if lds is None else lds
    require(lds >= n_scols, f"lds={lds} is smaller than the submatrix width {n_scols}.")
    min_rows = ptr // n_cols + n_srows
    if n_rows is None:
        n_rows = min_rows
    require(n_rows >= min_rows,
            f"Submatrix rows [{ptr // n_cols}, {min_rows}) exceed the parent's {n_rows} rows.")
    seed = as_state(seed)
    out = matrix_view(smat, Layout.RowMajor, n_srows, n_scols, lds)
    cols = np.arange(n_scols, dtype=np.int64)
    rows_per_batch = max(1, _BATCH_ENTRIES // n_scols)

    def fill_rows(start: int, stop: int) -> None:
        for lo in range(start, stop, rows_per_batch):
            hi = min(lo + rows_per_batch, stop)
            rows = np.arange(lo, hi, dtype=np.int64)
            addrs = ptr + rows[:, None] * n_cols + cols[None, :]
            blocks, lanes = np.divmod(addrs, WORDS_PER_BLOCK)
            needed, inverse = np.unique(blocks.ravel(), return_inverse=True)
            values = transform(generate_blocks(seed, needed))
            out[lo:hi, :] = values[inverse.reshape(addrs.shape), lanes]

    parallel_for(n_srows, fill_rows, min_chunk=max(1, 4096 // n_scols))
    return seed.advance(blocks_for(n_rows * n_cols))


def fill_rmat(
    n_rows: int,
    n_cols: int,
    mat: np.ndarray,
    seed,
    transform: Transform,
    major_axis: MajorAxis = MajorAxis.Long
) -> CounterState:
    """
    Fill an n_rows x n_cols matrix, traversing it along `major_axis`.

    The buffer is row-major unless the traversal is transposed, in which case
    it holds the matrix in column-major order. The choice matches
    `traversal_layout`.
    """
    if traversal_layout(n_rows, n_cols, major_axis) == Layout.ColMajor:
        return fill_rsubmat(n_rows, mat, n_cols, n_rows, 0, seed, transform, n_rows=n_cols)
    return fill_rsubmat(n_cols, mat, n_rows, n_cols, 0, seed, transform, n_rows=n_rows)


def traversal_layout(n_rows: int, n_cols: int, major_axis: MajorAxis) -> Layout:
    """
    Storage layout produced by generating along `major_axis`.

    Long-axis vectors are rows of a wide matrix and columns of a tall (or
    square) one; short-axis vectors are the opposite.
    """
    is_wide = n_rows < n_cols
    if major_axis == MajorAxis.Long:
        return Layout.RowMajor if is_wide else Layout.ColMajor
    return Layout.ColMajor if is_wide else Layout.RowMajor


def fill_buff(buff: np.ndarray, dist, seed) -> CounterState:
    """Fill `buff` with a sample from the dense distribution `dist`."""
    transform = transform_for(dist.family)
    require(buff.size >= dist.n_rows * dist.n_cols,
            f"Buffer of size {buff.size} cannot hold a {dist.n_rows} x {dist.n_cols} matrix.")
    return fill_rmat(dist.n_rows, dist.n_cols, buff, seed, transform, dist.major_axis)


def fill_dense(
    dist,
    seed,
    buff: Optional[np.ndarray] = None,
    dtype=np.float64
) -> Tuple[np.ndarray, CounterState]:
    """
    Sample a dense matrix from `dist`.

    Args:
        dist: A DenseDist.
        seed: CounterState or integer key.
        buff: Optional flat buffer to fill; allocated when omitted.
        dtype: dtype of an allocated buffer.

    Returns:
        Tuple of (buffer, next_state).
    """
    if buff is None:
        buff = np.empty(dist.n_rows * dist.n_cols, dtype=dtype)
    next_state = fill_buff(buff, dist, seed)
    return buff, next_state
