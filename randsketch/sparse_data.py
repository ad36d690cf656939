"""
Dense sketching operator times a sparse data matrix.

The data matrix is any scipy.sparse matrix; (ro_a, co_a) select the
submatrix of it that takes part in the product.
"""
from scipy import sparse

from .base import (
    Op, check_nonnegative_offsets, check_positive_dims, dims_before_op, require
)
from .blas import accumulate, matrix_view, op_view
from .dense_apply import _check_submatrix, _operand
from .operators.dense import DenseSkOp, submatrix_as_blackbox


def _data_submatrix(A, op_a: Op, rows: int, cols: int, ro_a: int, co_a: int):
    """op(A[ro_a:ro_a + r, co_a:co_a + c]) in CSR format, where op(...) is rows x cols."""
    if not sparse.issparse(A):
        raise TypeError(f"Expected a scipy.sparse matrix, got {type(A).__name__}.")
    check_nonnegative_offsets(ro_a=ro_a, co_a=co_a)
    r, c = dims_before_op(rows, cols, op_a)
    require(ro_a + r <= A.shape[0] and co_a + c <= A.shape[1],
            f"A {r} x {c} submatrix at ({ro_a}, {co_a}) does not fit in a matrix of shape {A.shape}.")
    sub = sparse.csr_matrix(A)[ro_a:ro_a + r, co_a:co_a + c]
    return sub.T.tocsr() if op_a == Op.Trans else sub


def lsksp3(
    layout, op_s, op_a, d, n, m, alpha, S: DenseSkOp, ro_s, co_s, A, ro_a, co_a, beta, B, ldb
) -> None:
    """
    B := alpha * op(submat(S)) @ op(submat(A)) + beta * B.

    op(submat(S)) is d x m, op(submat(A)) is m x n and B is d x n, stored in
    `layout` with leading dimension ldb.
    """
    if not isinstance(S, DenseSkOp):
        raise TypeError(f"lsksp3 needs a DenseSkOp, got {type(S).__name__}.")
    check_positive_dims(d=d, n=n, m=m)
    rows_s, cols_s = dims_before_op(d, m, op_s)
    _check_submatrix(S, rows_s, cols_s, ro_s, co_s)
    if not S.is_materialized:
        sub = submatrix_as_blackbox(S, rows_s, cols_s, ro_s, co_s, dtype=B.dtype)
        try:
            lsksp3(layout, op_s, op_a, d, n, m, alpha, sub, 0, 0, A, ro_a, co_a, beta, B, ldb)
        finally:
            sub.release()
        return
    A_sub = _data_submatrix(A, op_a, m, n, ro_a, co_a)
    buf_s, lds, op_s = _operand(S, layout, op_s, ro_s, co_s)
    S_view = op_view(buf_s, layout, op_s, d, m, lds)
    B_view = matrix_view(B, layout, d, n, ldb)

    def product():
        return (A_sub.T.tocsr() @ S_view.T).T

    accumulate(B_view, alpha, product, beta)


def rsksp3(
    layout, op_a, op_s, m, d, n, alpha, A, ro_a, co_a, S: DenseSkOp, ro_s, co_s, beta, B, ldb
) -> None:
    """
    B := alpha * op(submat(A)) @ op(submat(S)) + beta * B.

    op(submat(A)) is m x n, op(submat(S)) is n x d and B is m x d.
    """
    if not isinstance(S, DenseSkOp):
        raise TypeError(f"rsksp3 needs a DenseSkOp, got {type(S).__name__}.")
    check_positive_dims(m=m, d=d, n=n)
    rows_s, cols_s = dims_before_op(n, d, op_s)
    _check_submatrix(S, rows_s, cols_s, ro_s, co_s)
    if not S.is_materialized:
        sub = submatrix_as_blackbox(S, rows_s, cols_s, ro_s, co_s, dtype=B.dtype)
        try:
            rsksp3(layout, op_a, op_s, m, d, n, alpha, A, ro_a, co_a, sub, 0, 0, beta, B, ldb)
        finally:
            sub.release()
        return
    A_sub = _data_submatrix(A, op_a, m, n, ro_a, co_a)
    buf_s, lds, op_s = _operand(S, layout, op_s, ro_s, co_s)
    S_view = op_view(buf_s, layout, op_s, n, d, lds)
    B_view = matrix_view(B, layout, m, d, ldb)

    def product():
        return A_sub @ S_view

    accumulate(B_view, alpha, product, beta)
