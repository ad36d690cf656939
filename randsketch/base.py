"""Enumerations and addressing helpers shared by every sketching routine."""
from enum import Enum
from typing import Tuple


class Layout(Enum):
    """Storage order of a matrix held in a flat buffer."""
    ColMajor = 'C'
    RowMajor = 'R'


class Op(Enum):
    """Whether a matrix operand is used as-is or transposed."""
    NoTrans = 'N'
    Trans = 'T'


class MajorAxis(Enum):
    # Short: cols of a wide matrix, rows of a tall matrix.
    Short = 'S'
    # Long: rows of a wide matrix, cols of a tall matrix.
    Long = 'L'


def require(condition: bool, message: str) -> None:
    """Raise ValueError with `message` unless `condition` holds."""
    if not condition:
        raise ValueError(message)


def flip(op: Op) -> Op:
    return Op.Trans if op == Op.NoTrans else Op.NoTrans


def dims_before_op(rows: int, cols: int, op: Op) -> Tuple[int, int]:
    """
    Dimensions of X given the dimensions of op(X).

    Args:
        rows: Number of rows in op(X).
        cols: Number of columns in op(X).
        op: The operation applied to X.

    Returns:
        Tuple (rows of X, cols of X).
    """
    if op == Op.NoTrans:
        return rows, cols
    return cols, rows


def offset_and_ldim(
    layout: Layout,
    n_rows: int,
    n_cols: int,
    ro: int,
    co: int
) -> Tuple[int, int]:
    """
    Linear offset of entry (ro, co) and the leading dimension of a dense
    n_rows x n_cols matrix stored contiguously in `layout`.
    """
    if layout == Layout.ColMajor:
        return ro + n_rows * co, n_rows
    return ro * n_cols + co, n_cols


def check_positive_dims(**dims: int) -> None:
    for name, value in dims.items():
        require(value > 0, f"{name} must be positive, got {value}.")


def check_nonnegative_offsets(**offsets: int) -> None:
    for name, value in offsets.items():
        require(value >= 0, f"{name} must be nonnegative, got {value}.")
