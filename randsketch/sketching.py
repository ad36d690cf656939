"""
Entry points for applying sketching operators.

`sketch_general` and `sketch_general_right` accept either kind of operator
and dispatch once on it. `left_apply` and `right_apply` are shorthands for
two-dimensional numpy arrays (or scipy.sparse data matrices).
"""
import numpy as np
from scipy import sparse

from .base import Layout, Op, dims_before_op
from .dense_apply import lskge3, rskge3
from .operators.dense import DenseSkOp
from .operators.sparse import SparseSkOp
from .sparse_apply import lskges, rskges
from .sparse_data import lsksp3, rsksp3


def sketch_general(layout, op_s, op_a, d, n, m, alpha, S, ro_s, co_s, A, lda, beta, B, ldb) -> None:
    """
    B := alpha * op(submat(S)) @ op(A) + beta * B.

    op(submat(S)) is the d x m submatrix of op(S) read from (ro_s, co_s) of S;
    op(A) is m x n and B is d x n. A and B are flat buffers in `layout`.
    """
    if isinstance(S, DenseSkOp):
        lskge3(layout, op_s, op_a, d, n, m, alpha, S, ro_s, co_s, A, lda, beta, B, ldb)
    elif isinstance(S, SparseSkOp):
        lskges(layout, op_s, op_a, d, n, m, alpha, S, ro_s, co_s, A, lda, beta, B, ldb)
    else:
        raise TypeError(f"Unsupported sketching operator: {type(S).__name__}")


def sketch_general_right(layout, op_a, op_s, m, d, n, alpha, A, lda, S, ro_s, co_s, beta, B, ldb) -> None:
    """B := alpha * op(A) @ op(submat(S)) + beta * B, with op(A) m x n and B m x d."""
    if isinstance(S, DenseSkOp):
        rskge3(layout, op_a, op_s, m, d, n, alpha, A, lda, S, ro_s, co_s, beta, B, ldb)
    elif isinstance(S, SparseSkOp):
        rskges(layout, op_a, op_s, m, d, n, alpha, A, lda, S, ro_s, co_s, beta, B, ldb)
    else:
        raise TypeError(f"Unsupported sketching operator: {type(S).__name__}")


def sketch_sparse(layout, op_s, op_a, d, n, m, alpha, S, ro_s, co_s, A, ro_a, co_a, beta, B, ldb) -> None:
    """Left sketch of a scipy.sparse data matrix by a dense operator."""
    lsksp3(layout, op_s, op_a, d, n, m, alpha, S, ro_s, co_s, A, ro_a, co_a, beta, B, ldb)


def sketch_sparse_right(layout, op_a, op_s, m, d, n, alpha, A, ro_a, co_a, S, ro_s, co_s, beta, B, ldb) -> None:
    """Right sketch of a scipy.sparse data matrix by a dense operator."""
    rsksp3(layout, op_a, op_s, m, d, n, alpha, A, ro_a, co_a, S, ro_s, co_s, beta, B, ldb)


def _order(layout: Layout) -> str:
    return 'F' if layout == Layout.ColMajor else 'C'


def _flatten(A: np.ndarray, layout: Layout):
    """Flat buffer and leading dimension of a 2-D array stored in `layout`."""
    arr = np.asarray(A)
    buf = np.ravel(arr, order=_order(layout))
    return buf, arr.shape[0] if layout == Layout.ColMajor else arr.shape[1]


def left_apply(
    S,
    A,
    op_s: Op = Op.NoTrans,
    op_a: Op = Op.NoTrans,
    alpha: float = 1.0,
    layout: Layout = Layout.ColMajor,
    dtype=np.float64
) -> np.ndarray:
    """
    Return alpha * op(S) @ op(A) as a new 2-D array.

    Args:
        S: A DenseSkOp or SparseSkOp.
        A: 2-D numpy array, or a scipy.sparse matrix when S is dense.
        op_s: Operation applied to S.
        op_a: Operation applied to A.
        alpha: Scalar multiplier.
        layout: Storage order used for the underlying buffers.
        dtype: dtype of the result.
    """
    d, m = dims_before_op(S.n_rows, S.n_cols, op_s)
    m_a, n = dims_before_op(A.shape[0], A.shape[1], op_a)
    if m_a != m:
        raise ValueError(f"op(S) has {m} columns but op(A) has {m_a} rows.")
    B = np.zeros(d * n, dtype=dtype)
    ldb = d if layout == Layout.ColMajor else n
    if sparse.issparse(A):
        sketch_sparse(layout, op_s, op_a, d, n, m, alpha, S, 0, 0, A, 0, 0, 0.0, B, ldb)
    else:
        buf, lda = _flatten(A, layout)
        sketch_general(layout, op_s, op_a, d, n, m, alpha, S, 0, 0, buf, lda, 0.0, B, ldb)
    return B.reshape((d, n), order=_order(layout))


def right_apply(
    A,
    S,
    op_a: Op = Op.NoTrans,
    op_s: Op = Op.NoTrans,
    alpha: float = 1.0,
    layout: Layout = Layout.ColMajor,
    dtype=np.float64
) -> np.ndarray:
    """Return alpha * op(A) @ op(S) as a new 2-D array."""
    m, n = dims_before_op(A.shape[0], A.shape[1], op_a)
    n_s, d = dims_before_op(S.n_rows, S.n_cols, op_s)
    if n_s != n:
        raise ValueError(f"op(A) has {n} columns but op(S) has {n_s} rows.")
    B = np.zeros(m * d, dtype=dtype)
    ldb = m if layout == Layout.ColMajor else d
    if sparse.issparse(A):
        sketch_sparse_right(layout, op_a, op_s, m, d, n, alpha, A, 0, 0, S, 0, 0, 0.0, B, ldb)
    else:
        buf, lda = _flatten(A, layout)
        sketch_general_right(layout, op_a, op_s, m, d, n, alpha, buf, lda, S, 0, 0, 0.0, B, ldb)
    return B.reshape((m, d), order=_order(layout))
