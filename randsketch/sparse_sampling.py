"""
Sparse sampling engine.

Samples `vec_nnz` distinct major-axis indices for each of `dim_minor` vectors
by running a partial Fisher-Yates shuffle of range(dim_major). Step j of
vector i draws from the counter `seed + i * vec_nnz + j`, so the pattern of
any single vector can be reproduced without sampling the others.
"""
from typing import Optional, Tuple

import numpy as np

from .base import Layout, require
from .blas import matrix_view
from .config import parallel_for
from .random_gen import CounterState, as_state, generate_blocks

# Upper bound on the size of a worker's Fisher-Yates work array.
_WORK_ENTRIES = 1 << 20


def signed_pivot_draw(
    state: CounterState,
    offsets: np.ndarray,
    j: int,
    dim_major: int
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Randomness for step `j` of a Fisher-Yates shuffle, for many vectors at once.

    Word 0 of each block chooses the pivot in [j, dim_major) and word 1
    chooses the sign of the value attached to the sampled index.

    Args:
        state: Seed state shared by all vectors.
        offsets: Counter offsets, one per vector.
        j: Step of the shuffle.
        dim_major: Size of the population being shuffled.

    Returns:
        Tuple of (pivots, signs).
    """
    words = generate_blocks(state, offsets)
    pivots = j + words[:, 0].astype(np.int64) % (dim_major - j)
    signs = np.where(words[:, 1] % 2 == 0, 1.0, -1.0)
    return pivots, signs


def repeated_fisher_yates(
    state,
    vec_nnz: int,
    dim_major: int,
    dim_minor: int,
    idxs_major: np.ndarray,
    idxs_minor: Optional[np.ndarray] = None,
    vals: Optional[np.ndarray] = None
) -> CounterState:
    """
    Sample `vec_nnz` indices without replacement from range(dim_major), once
    for each of `dim_minor` vectors.

    Results for vector i occupy positions [i * vec_nnz, (i + 1) * vec_nnz) of
    the output arrays.

    Args:
        state: CounterState or integer key.
        vec_nnz: Number of indices sampled per vector.
        dim_major: Size of the population of each vector.
        dim_minor: Number of vectors.
        idxs_major: Output for the sampled indices.
        idxs_minor: Optional output for the vector index of each sample.
        vals: Optional output for a random sign attached to each sample.

    Returns:
        The state that should seed the next independent draw.
    """
    require(vec_nnz > 0, f"vec_nnz must be positive, got {vec_nnz}.")
    require(dim_major > 0 and dim_minor > 0,
            f"Axis lengths must be positive, got dim_major={dim_major}, dim_minor={dim_minor}.")
    require(vec_nnz <= dim_major,
            f"Cannot sample {vec_nnz} distinct indices from a population of {dim_major}.")
    state = as_state(state)
    out_major = matrix_view(idxs_major, Layout.RowMajor, dim_minor, vec_nnz, vec_nnz)
    out_minor = None
    if idxs_minor is not None:
        out_minor = matrix_view(idxs_minor, Layout.RowMajor, dim_minor, vec_nnz, vec_nnz)
    out_vals = None
    if vals is not None:
        out_vals = matrix_view(vals, Layout.RowMajor, dim_minor, vec_nnz, vec_nnz)
    batch = max(1, min(dim_minor, _WORK_ENTRIES // dim_major))

    def sample_vectors(start: int, stop: int) -> None:
        width = min(batch, stop - start)
        work = np.tile(np.arange(dim_major, dtype=np.int64), (width, 1))
        pivots = np.empty((width, vec_nnz), dtype=np.int64)
        picks = np.empty((width, vec_nnz), dtype=np.int64)
        for lo in range(start, stop, width):
            hi = min(lo + width, stop)
            nb = hi - lo
            w, piv, pk = work[:nb], pivots[:nb], picks[:nb]
            at = np.arange(nb)
            base = np.arange(lo, hi, dtype=np.int64) * vec_nnz
            for j in range(vec_nnz):
                ell, sign = signed_pivot_draw(state, base + j, j, dim_major)
                piv[:, j] = ell
                swap = w[at, ell]
                w[at, ell] = w[:, j]
                w[:, j] = swap
                pk[:, j] = swap
                if out_vals is not None:
                    out_vals[lo:hi, j] = sign
            out_major[lo:hi, :] = pk
            if out_minor is not None:
                out_minor[lo:hi, :] = np.arange(lo, hi)[:, None]
            # Undo the swaps so the work array is the identity permutation again.
            for j in range(vec_nnz - 1, -1, -1):
                ell = piv[:, j]
                w[:, j] = w[at, ell]
                w[at, ell] = pk[:, j]

    parallel_for(dim_minor, sample_vectors, min_chunk=max(1, 1024 // vec_nnz))
    return state.advance(dim_minor * vec_nnz)


def compute_next_state(dist, state) -> CounterState:
    """State following a full sample from the sparse distribution `dist`."""
    return as_state(state).advance(dist.dim_minor * dist.vec_nnz)
