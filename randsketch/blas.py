"""
Adapter between flat numpy buffers and the BLAS gemm kernel.

A matrix operand is described the way BLAS describes it: a buffer, a storage
layout, its dimensions and a leading dimension. Offsets into a buffer are
expressed by slicing (`buf[pos:]`), which never copies.
"""
import numpy as np
from numpy.lib.stride_tricks import as_strided
from scipy.linalg.blas import get_blas_funcs

from .base import Layout, Op, dims_before_op, require


def matrix_view(buf: np.ndarray, layout: Layout, rows: int, cols: int, ld: int) -> np.ndarray:
    """
    View `buf` as a rows x cols matrix without copying.

    Args:
        buf: One-dimensional buffer.
        layout: ColMajor (mat[i, j] = buf[i + j*ld]) or RowMajor (mat[i, j] = buf[i*ld + j]).
        rows: Number of rows.
        cols: Number of columns.
        ld: Leading dimension.

    Returns:
        A strided view sharing memory with `buf`.
    """
    require(buf.ndim == 1, f"Expected a one-dimensional buffer, got {buf.ndim} dimensions.")
    require(rows >= 0 and cols >= 0, f"Matrix dimensions must be nonnegative, got {rows} x {cols}.")
    step = buf.strides[0]
    if layout == Layout.ColMajor:
        require(ld >= max(rows, 1), f"Leading dimension {ld} is smaller than the column length {rows}.")
        extent = ld * (cols - 1) + rows if rows and cols else 0
        strides = (step, ld * step)
    else:
        require(ld >= max(cols, 1), f"Leading dimension {ld} is smaller than the row length {cols}.")
        extent = ld * (rows - 1) + cols if rows and cols else 0
        strides = (ld * step, step)
    require(buf.size >= extent,
            f"Buffer of size {buf.size} is too small for a {rows} x {cols} matrix with ld={ld}.")
    return as_strided(buf, shape=(rows, cols), strides=strides)


def op_view(buf: np.ndarray, layout: Layout, op: Op, rows: int, cols: int, ld: int) -> np.ndarray:
    """View of op(X), where op(X) is rows x cols."""
    r, c = dims_before_op(rows, cols, op)
    view = matrix_view(buf, layout, r, c, ld)
    return view.T if op == Op.Trans else view


def gemm(
    layout: Layout,
    op_a: Op,
    op_b: Op,
    m: int,
    n: int,
    k: int,
    alpha: float,
    A: np.ndarray,
    lda: int,
    B: np.ndarray,
    ldb: int,
    beta: float,
    C: np.ndarray,
    ldc: int
) -> None:
    """
    C := alpha * op(A) @ op(B) + beta * C, with op(A) m x k and op(B) k x n.

    If beta is zero, C is not read. If alpha is zero, the entries of A and B
    are not read, but their dimensions are still checked.
    """
    require(m >= 0 and n >= 0 and k >= 0, f"gemm dimensions must be nonnegative, got {(m, n, k)}.")
    A_view = op_view(A, layout, op_a, m, k, lda)
    B_view = op_view(B, layout, op_b, k, n, ldb)
    C_view = matrix_view(C, layout, m, n, ldc)
    if m == 0 or n == 0:
        return
    if alpha == 0 or k == 0:
        if beta == 0:
            C_view[...] = 0
        else:
            C_view *= beta
        return
    kernel = get_blas_funcs('gemm', (A_view, B_view, C_view))
    if beta == 0:
        result = kernel(alpha, A_view, B_view)
    else:
        result = kernel(alpha, A_view, B_view, beta=beta, c=C_view)
    C_view[...] = result


def accumulate(out: np.ndarray, alpha: float, product, beta: float) -> None:
    """
    out := alpha * product + beta * out, in place.

    `product` is a zero-argument callable so that nothing is computed when
    alpha is zero. If beta is zero, `out` is not read.
    """
    if alpha == 0:
        if beta == 0:
            out[...] = 0
        else:
            out *= beta
        return
    value = np.asarray(product())
    if beta == 0:
        out[...] = alpha * value
    else:
        out *= beta
        out += alpha * value
