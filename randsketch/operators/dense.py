from dataclasses import dataclass
from typing import Optional

import numpy as np

from .base import SketchingOperator
from ..base import Layout, MajorAxis, check_nonnegative_offsets, check_positive_dims, require
from ..blas import matrix_view
from ..dense_fill import (
    DenseDistName, blocks_for, fill_dense, fill_rsubmat, transform_for, traversal_layout
)
from ..random_gen import CounterState, as_state


@dataclass(frozen=True)
class DenseDist:
    """
    A distribution over dense sketching operators with i.i.d. entries.

    Attributes:
        n_rows: Matrices drawn from this distribution have this many rows.
        n_cols: Matrices drawn from this distribution have this many columns.
        family: Distribution of the entries.
        major_axis: Order in which the entries are generated.
    """
    n_rows: int
    n_cols: int
    family: DenseDistName = DenseDistName.Gaussian
    major_axis: MajorAxis = MajorAxis.Long

    def __post_init__(self):
        check_positive_dims(n_rows=self.n_rows, n_cols=self.n_cols)

    @property
    def n_elements(self) -> int:
        return self.n_rows * self.n_cols

    @property
    def layout(self) -> Layout:
        return dist_to_layout(self)


def dist_to_layout(dist: DenseDist) -> Layout:
    """Storage layout of a buffer sampled from `dist`."""
    return traversal_layout(dist.n_rows, dist.n_cols, dist.major_axis)


def dense_next_state(dist: DenseDist, seed) -> CounterState:
    return as_state(seed).advance(blocks_for(dist.n_elements))


class DenseSkOp(SketchingOperator):
    """
    A sample from a distribution over dense sketching operators.

    Constructing the operator does no random sampling. The buffer is filled
    by `realize`, or never: the application routines generate only the
    submatrix they need when the operator has no buffer.

    Args:
        dist: The distribution the operator is drawn from.
        seed: CounterState or integer key.
        buff: Optional caller-owned flat buffer holding the operator in
            `layout`. Required for the BlackBox family.
        layout: Storage order of `buff`. Only BlackBox operators may use a
            layout other than `dist_to_layout(dist)`.
    """

    def __init__(
        self,
        dist: DenseDist,
        seed=0,
        buff: Optional[np.ndarray] = None,
        layout: Optional[Layout] = None
    ):
        seed_state = as_state(seed)
        super().__init__(dist, seed_state, dense_next_state(dist, seed_state))
        natural = dist_to_layout(dist)
        if dist.family == DenseDistName.BlackBox:
            require(buff is not None, "A BlackBox DenseSkOp needs a user-supplied buffer.")
        elif layout is not None:
            require(layout == natural,
                    f"{dist.family.name} operators of this shape are stored {natural.name}.")
        if buff is not None:
            require(buff.ndim == 1, "DenseSkOp buffers must be one-dimensional.")
            require(buff.size >= dist.n_elements,
                    f"Buffer of size {buff.size} cannot hold a {dist.n_rows} x {dist.n_cols} operator.")
        self.layout = natural if layout is None else layout
        self.buff = buff

    @classmethod
    def sample(cls, dist: DenseDist, seed=0, dtype=np.float64) -> 'DenseSkOp':
        """Construct an operator and sample its buffer immediately."""
        S = cls(dist, seed)
        realize_full(S, dtype=dtype)
        return S

    @property
    def is_materialized(self) -> bool:
        return self.buff is not None

    @property
    def lds(self) -> int:
        return self.n_rows if self.layout == Layout.ColMajor else self.n_cols

    def realize(self, dtype=np.float64) -> 'DenseSkOp':
        return realize_full(self, dtype=dtype)

    def to_dense(self) -> np.ndarray:
        if self.buff is not None:
            return matrix_view(self.buff, self.layout, self.n_rows, self.n_cols, self.lds).copy()
        buff, _ = fill_dense(self.dist, self.seed_state)
        return matrix_view(buff, self.layout, self.n_rows, self.n_cols, self.lds).copy()

    def release(self) -> None:
        if self.own_memory:
            self.buff = None
            self.own_memory = False

    def __repr__(self):
        return (
            f"DenseSkOp({self.n_rows}x{self.n_cols}, family={self.dist.family.name}, "
            f"layout={self.layout.name}, materialized={self.is_materialized})"
        )


def realize_full(S: DenseSkOp, dtype=np.float64) -> DenseSkOp:
    """
    Allocate and fill the buffer of S.

    Calling this on an operator that already has a buffer changes nothing.
    """
    if S.buff is not None:
        return S
    buff, next_state = fill_dense(S.dist, S.seed_state, dtype=dtype)
    require(next_state == S.next_state, "Sampling consumed an unexpected number of counters.")
    S.buff = buff
    S.own_memory = True
    return S


def submatrix_as_blackbox(
    S: DenseSkOp,
    n_rows: int,
    n_cols: int,
    ro: int,
    co: int,
    dtype=np.float64
) -> DenseSkOp:
    """
    Generate only the n_rows x n_cols submatrix of S at (ro, co).

    The result is a materialized BlackBox operator stored in S.layout whose
    entries equal the corresponding entries of S once S is fully sampled.
    The submatrix owns its scratch buffer.
    """
    check_positive_dims(n_rows=n_rows, n_cols=n_cols)
    check_nonnegative_offsets(ro=ro, co=co)
    require(ro + n_rows <= S.n_rows,
            f"Rows [{ro}, {ro + n_rows}) exceed the operator's {S.n_rows} rows.")
    require(co + n_cols <= S.n_cols,
            f"Columns [{co}, {co + n_cols}) exceed the operator's {S.n_cols} columns.")
    transform = transform_for(S.dist.family)
    buff = np.empty(n_rows * n_cols, dtype=dtype)
    if S.layout == Layout.RowMajor:
        fill_rsubmat(S.n_cols, buff, n_rows, n_cols, ro * S.n_cols + co,
                     S.seed_state, transform, n_rows=S.n_rows)
    else:
        fill_rsubmat(S.n_rows, buff, n_cols, n_rows, co * S.n_rows + ro,
                     S.seed_state, transform, n_rows=S.n_cols)
    sub_dist = DenseDist(n_rows, n_cols, DenseDistName.BlackBox, S.dist.major_axis)
    sub = DenseSkOp(sub_dist, S.seed_state, buff, layout=S.layout)
    sub.own_memory = True
    return sub
