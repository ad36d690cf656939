"""
Sparse sketching operator times dense matrix.

The operator is never densified: the nonzeros of its coordinate view that
fall inside the requested submatrix are shifted to local coordinates and the
product is formed with scipy.sparse.
"""
from scipy.sparse import coo_matrix

from .base import (
    Op, check_nonnegative_offsets, check_positive_dims, dims_before_op, require
)
from .blas import accumulate, matrix_view, op_view
from .operators.sparse import SparseSkOp, coo_view_of_skop


def sparse_submatrix(S: SparseSkOp, rows: int, cols: int, ro_s: int, co_s: int):
    """
    The rows x cols submatrix of S at (ro_s, co_s), in CSR format.

    If S has not been sampled, a temporary copy is sampled and S is left
    untouched.
    """
    check_nonnegative_offsets(ro_s=ro_s, co_s=co_s)
    require(ro_s + rows <= S.n_rows,
            f"Submatrix rows [{ro_s}, {ro_s + rows}) exceed the operator's {S.n_rows} rows.")
    require(co_s + cols <= S.n_cols,
            f"Submatrix columns [{co_s}, {co_s + cols}) exceed the operator's {S.n_cols} columns.")
    source = S if S.is_materialized else SparseSkOp(S.dist, S.seed_state)
    coo = coo_view_of_skop(source)
    keep = (
        (coo.rows >= ro_s) & (coo.rows < ro_s + rows)
        & (coo.cols >= co_s) & (coo.cols < co_s + cols)
    )
    sub = coo_matrix(
        (coo.vals[keep], (coo.rows[keep] - ro_s, coo.cols[keep] - co_s)),
        shape=(rows, cols)
    )
    return sub.tocsr()


def lskges(
    layout, op_s, op_a, d, n, m, alpha, S: SparseSkOp, ro_s, co_s, A, lda, beta, B, ldb
) -> None:
    """B := alpha * op(submat(S)) @ op(A) + beta * B, with op(submat(S)) d x m."""
    if not isinstance(S, SparseSkOp):
        raise TypeError(f"lskges needs a SparseSkOp, got {type(S).__name__}.")
    check_positive_dims(d=d, n=n, m=m)
    rows_s, cols_s = dims_before_op(d, m, op_s)
    sub = sparse_submatrix(S, rows_s, cols_s, ro_s, co_s)
    if op_s == Op.Trans:
        sub = sub.T.tocsr()
    A_view = op_view(A, layout, op_a, m, n, lda)
    B_view = matrix_view(B, layout, d, n, ldb)

    def product():
        return sub @ A_view

    accumulate(B_view, alpha, product, beta)


def rskges(
    layout, op_a, op_s, m, d, n, alpha, A, lda, S: SparseSkOp, ro_s, co_s, beta, B, ldb
) -> None:
    """B := alpha * op(A) @ op(submat(S)) + beta * B, with op(submat(S)) n x d."""
    if not isinstance(S, SparseSkOp):
        raise TypeError(f"rskges needs a SparseSkOp, got {type(S).__name__}.")
    check_positive_dims(m=m, d=d, n=n)
    rows_s, cols_s = dims_before_op(n, d, op_s)
    sub = sparse_submatrix(S, rows_s, cols_s, ro_s, co_s)
    # (op(A) @ X)^T = X^T @ op(A)^T keeps the sparse operand on the left.
    sub_t = sub.tocsr() if op_s == Op.Trans else sub.T.tocsr()
    A_view = op_view(A, layout, op_a, m, n, lda)
    B_view = matrix_view(B, layout, m, d, ldb)

    def product():
        return (sub_t @ A_view.T).T

    accumulate(B_view, alpha, product, beta)
