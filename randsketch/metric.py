import numpy as np

from .base import Layout, Op
from .blas import op_view


def relative_error(actual: np.ndarray, expected: np.ndarray) -> float:
    """Frobenius-norm error of `actual` relative to `expected`."""
    a1 = np.asarray(actual, dtype=float)
    a2 = np.asarray(expected, dtype=float)

    if a1.shape != a2.shape:
        raise ValueError(f"Shapes differ: {a1.shape} vs {a2.shape}")

    scale = np.linalg.norm(a2)
    if scale == 0:
        return float(np.linalg.norm(a1))
    return float(np.linalg.norm(a1 - a2) / scale)


def buffs_approx_equal(actual, expected, bound=None, rtol: float = None) -> None:
    """
    Check two arrays entry by entry, raising AssertionError at the first
    entry that differs by more than allowed.

    If `bound` is given it is a componentwise error bound with the shape of
    the arrays. Otherwise entries must agree to within `rtol` times their
    magnitude (default: 10 * machine epsilon of the expected dtype).
    """
    a1 = np.asarray(actual)
    a2 = np.asarray(expected)
    if a1.shape != a2.shape:
        raise AssertionError(f"Shapes differ: {a1.shape} vs {a2.shape}")

    diff = np.abs(a1 - a2)
    if bound is None:
        if rtol is None:
            rtol = 10 * np.finfo(np.result_type(a2.dtype, np.float32)).eps
        allowed = rtol * np.maximum(np.abs(a1), np.abs(a2))
    else:
        allowed = np.broadcast_to(np.asarray(bound), diff.shape)
    bad = np.argwhere(diff > allowed)
    if bad.size:
        idx = tuple(int(i) for i in bad[0])
        raise AssertionError(
            f"{len(bad)} entries differ; first at {idx}: actual={a1[idx]}, "
            f"expected={a2[idx]}, allowed error {allowed[idx]}"
        )


def matrices_approx_equal(
    layout: Layout,
    op: Op,
    rows: int,
    cols: int,
    A: np.ndarray,
    lda: int,
    B: np.ndarray,
    ldb: int,
    rtol: float = None
) -> None:
    """Check that op(A) equals B, both rows x cols matrices stored in `layout`."""
    left = op_view(A, layout, op, rows, cols, lda)
    right = op_view(B, layout, Op.NoTrans, rows, cols, ldb)
    buffs_approx_equal(left, right, rtol=rtol)
