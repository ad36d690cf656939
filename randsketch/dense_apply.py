"""
Dense sketching operator times dense matrix.

Both routines take BLAS-style operands: flat buffers with a layout and a
leading dimension. Only the submatrix of the sketching operator whose
top-left entry is (ro_s, co_s) takes part in the product.
"""
from .base import (
    Op, check_nonnegative_offsets, check_positive_dims, dims_before_op, flip,
    offset_and_ldim, require
)
from .blas import gemm
from .operators.dense import DenseSkOp, submatrix_as_blackbox


def _check_submatrix(S: DenseSkOp, rows: int, cols: int, ro_s: int, co_s: int) -> None:
    check_nonnegative_offsets(ro_s=ro_s, co_s=co_s)
    require(ro_s + rows <= S.n_rows,
            f"Submatrix rows [{ro_s}, {ro_s + rows}) exceed the operator's {S.n_rows} rows.")
    require(co_s + cols <= S.n_cols,
            f"Submatrix columns [{co_s}, {co_s + cols}) exceed the operator's {S.n_cols} columns.")


def _operand(S: DenseSkOp, layout, op_s: Op, ro_s: int, co_s: int):
    """Buffer, leading dimension and effective op of S as seen in `layout`."""
    if S.layout != layout:
        op_s = flip(op_s)
    pos, lds = offset_and_ldim(S.layout, S.n_rows, S.n_cols, ro_s, co_s)
    return S.buff[pos:], lds, op_s


def lskge3(
    layout, op_s, op_a, d, n, m, alpha, S: DenseSkOp, ro_s, co_s, A, lda, beta, B, ldb
) -> None:
    """
    B := alpha * op(submat(S)) @ op(A) + beta * B.

    Args:
        layout: Storage order of A and B.
        op_s: Operation applied to the submatrix of S.
        op_a: Operation applied to A.
        d: Rows of B and of op(submat(S)).
        n: Columns of B and of op(A).
        m: Columns of op(submat(S)) and rows of op(A).
        alpha, beta: Scalars.
        S: A DenseSkOp; if it has no buffer, only the submatrix is generated.
        ro_s, co_s: Row and column offset of the submatrix within S.
        A, lda: Flat buffer and leading dimension of A.
        B, ldb: Flat buffer and leading dimension of B.
    """
    if not isinstance(S, DenseSkOp):
        raise TypeError(f"lskge3 needs a DenseSkOp, got {type(S).__name__}.")
    check_positive_dims(d=d, n=n, m=m)
    rows_s, cols_s = dims_before_op(d, m, op_s)
    _check_submatrix(S, rows_s, cols_s, ro_s, co_s)
    if not S.is_materialized:
        sub = submatrix_as_blackbox(S, rows_s, cols_s, ro_s, co_s, dtype=B.dtype)
        try:
            lskge3(layout, op_s, op_a, d, n, m, alpha, sub, 0, 0, A, lda, beta, B, ldb)
        finally:
            sub.release()
        return
    buf_s, lds, op_s = _operand(S, layout, op_s, ro_s, co_s)
    gemm(layout, op_s, op_a, d, n, m, alpha, buf_s, lds, A, lda, beta, B, ldb)


def rskge3(
    layout, op_a, op_s, m, d, n, alpha, A, lda, S: DenseSkOp, ro_s, co_s, beta, B, ldb
) -> None:
    """
    B := alpha * op(A) @ op(submat(S)) + beta * B.

    op(A) is m x n, op(submat(S)) is n x d and B is m x d.
    """
    if not isinstance(S, DenseSkOp):
        raise TypeError(f"rskge3 needs a DenseSkOp, got {type(S).__name__}.")
    check_positive_dims(m=m, d=d, n=n)
    rows_s, cols_s = dims_before_op(n, d, op_s)
    _check_submatrix(S, rows_s, cols_s, ro_s, co_s)
    if not S.is_materialized:
        sub = submatrix_as_blackbox(S, rows_s, cols_s, ro_s, co_s, dtype=B.dtype)
        try:
            rskge3(layout, op_a, op_s, m, d, n, alpha, A, lda, sub, 0, 0, beta, B, ldb)
        finally:
            sub.release()
        return
    buf_s, lds, op_s = _operand(S, layout, op_s, ro_s, co_s)
    gemm(layout, op_a, op_s, m, d, n, alpha, A, lda, buf_s, lds, beta, B, ldb)
