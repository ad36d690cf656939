import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.sparse import coo_matrix

from .base import SketchingOperator
from ..base import Layout, MajorAxis, check_positive_dims, require
from ..random_gen import CounterState, as_state
from ..sparse_sampling import compute_next_state, repeated_fisher_yates


@dataclass(frozen=True)
class SparseDist:
    """
    A distribution over sparse sketching operators.

    If major_axis is Short, sampled matrices have exactly `vec_nnz` nonzeros
    per short-axis vector (column of a wide matrix, row of a tall matrix).
    If major_axis is Long, they have exactly `vec_nnz` nonzeros per long-axis
    vector. Short-axis major operators are the safer default: they carry
    useful geometric information without assumptions on the data.
    """
    n_rows: int
    n_cols: int
    vec_nnz: int
    major_axis: MajorAxis = MajorAxis.Short

    def __post_init__(self):
        check_positive_dims(n_rows=self.n_rows, n_cols=self.n_cols, vec_nnz=self.vec_nnz)
        require(self.vec_nnz <= self.dim_major,
                f"vec_nnz={self.vec_nnz} exceeds the major axis length {self.dim_major}.")

    @property
    def dim_short(self) -> int:
        return min(self.n_rows, self.n_cols)

    @property
    def dim_long(self) -> int:
        return max(self.n_rows, self.n_cols)

    @property
    def dim_major(self) -> int:
        """Length of the vectors whose sparsity is controlled."""
        return self.dim_short if self.major_axis == MajorAxis.Short else self.dim_long

    @property
    def dim_minor(self) -> int:
        """Number of vectors that are sampled."""
        return self.dim_long if self.major_axis == MajorAxis.Short else self.dim_short

    @property
    def full_nnz(self) -> int:
        return self.vec_nnz * self.dim_minor

    @property
    def is_wide(self) -> bool:
        return self.n_rows <= self.n_cols

    @property
    def major_is_rows(self) -> bool:
        """True if the sampled (major-axis) indices are row indices."""
        return self.is_wide if self.major_axis == MajorAxis.Short else not self.is_wide

    def transposed(self) -> 'SparseDist':
        axis = self.major_axis
        if self.n_rows == self.n_cols:
            # Both axes have the same length, so only the flag can record
            # that the sampled indices moved from rows to columns.
            axis = MajorAxis.Long if axis == MajorAxis.Short else MajorAxis.Short
        return SparseDist(self.n_cols, self.n_rows, self.vec_nnz, axis)


def isometry_scale_factor(dist: SparseDist) -> float:
    """Scale that makes operators drawn from `dist` isometries in expectation."""
    if dist.major_axis == MajorAxis.Short:
        return dist.vec_nnz ** -0.5
    return math.sqrt(dist.dim_long / (dist.vec_nnz * dist.dim_short))


@dataclass(frozen=True)
class COOView:
    """Read-only coordinate view of a sampled sparse operator."""
    n_rows: int
    n_cols: int
    nnz: int
    vals: np.ndarray
    rows: np.ndarray
    cols: np.ndarray

    def to_scipy(self) -> coo_matrix:
        return coo_matrix((self.vals, (self.rows, self.cols)), shape=(self.n_rows, self.n_cols))

    def to_dense(self, layout: Layout = Layout.ColMajor) -> np.ndarray:
        """Flat buffer holding the operator in `layout`."""
        dense = self.to_scipy().toarray()
        return dense.ravel(order='F' if layout == Layout.ColMajor else 'C')


class SparseSkOp(SketchingOperator):
    """
    A sample from a distribution over sparse sketching operators, stored as
    a coordinate triple (rows, cols, vals) of length `dist.full_nnz`.

    Entries [i * vec_nnz, (i + 1) * vec_nnz) of the triple hold the nonzeros
    of the i-th minor-axis vector.

    Args:
        dist: The distribution the operator is drawn from.
        seed: CounterState or integer key.
        rows, cols, vals: Optional caller-owned arrays for the triple. Give
            all three or none.
        known_filled: Whether caller-owned arrays already hold the sample.
        next_state: Override for the state following this operator; used by
            views that share another operator's sample.
    """

    def __init__(
        self,
        dist: SparseDist,
        seed=0,
        rows: Optional[np.ndarray] = None,
        cols: Optional[np.ndarray] = None,
        vals: Optional[np.ndarray] = None,
        known_filled: bool = True,
        next_state: Optional[CounterState] = None
    ):
        seed_state = as_state(seed)
        if next_state is None:
            next_state = compute_next_state(dist, seed_state)
        super().__init__(dist, seed_state, next_state)
        supplied = [a is not None for a in (rows, cols, vals)]
        require(all(supplied) or not any(supplied),
                "Supply all of rows, cols and vals, or none of them.")
        if all(supplied):
            for name, arr in (('rows', rows), ('cols', cols), ('vals', vals)):
                require(arr.ndim == 1 and arr.size >= dist.full_nnz,
                        f"{name} must be a flat array with at least {dist.full_nnz} entries.")
            self.known_filled = known_filled
        else:
            self.known_filled = False
        self.rows = rows
        self.cols = cols
        self.vals = vals

    @classmethod
    def sample(cls, dist: SparseDist, seed=0) -> 'SparseSkOp':
        """Construct an operator and sample it immediately."""
        S = cls(dist, seed)
        S.realize()
        return S

    @property
    def is_materialized(self) -> bool:
        return self.known_filled

    @property
    def nnz(self) -> int:
        return self.dist.full_nnz

    def realize(self, index_dtype=np.int64, dtype=np.float64) -> 'SparseSkOp':
        if self.known_filled:
            return self
        if self.rows is None:
            nnz = self.dist.full_nnz
            self.rows = np.empty(nnz, dtype=index_dtype)
            self.cols = np.empty(nnz, dtype=index_dtype)
            self.vals = np.empty(nnz, dtype=dtype)
            self.own_memory = True
        fill_sparse(self)
        return self

    def to_dense(self) -> np.ndarray:
        return coo_view_of_skop(self).to_scipy().toarray()

    def release(self) -> None:
        if self.own_memory:
            self.rows = self.cols = self.vals = None
            self.known_filled = False
            self.own_memory = False

    def describe(self) -> str:
        """Multi-line summary of the operator and its coordinate arrays."""
        kind = "SASO: short-axis-sparse operator" if self.dist.major_axis == MajorAxis.Short \
            else "LASO: long-axis-sparse operator"
        lines = [
            "SparseSkOp information",
            f"\t{kind}",
            f"\tn_rows = {self.n_rows}",
            f"\tn_cols = {self.n_cols}",
            f"\tvec_nnz = {self.dist.vec_nnz}",
        ]
        if self.known_filled:
            nnz = self.dist.full_nnz
            lines += [
                "\tvector of row indices", f"\t\t{self.rows[:nnz].tolist()}",
                "\tvector of column indices", f"\t\t{self.cols[:nnz].tolist()}",
                "\tvector of values", f"\t\t{self.vals[:nnz].tolist()}",
            ]
        else:
            lines.append("\t(not sampled)")
        return "\n".join(lines)

    def __repr__(self):
        return (
            f"SparseSkOp({self.n_rows}x{self.n_cols}, vec_nnz={self.dist.vec_nnz}, "
            f"major_axis={self.dist.major_axis.name}, materialized={self.is_materialized})"
        )


def fill_sparse(S: SparseSkOp) -> SparseSkOp:
    """
    Sample S into its coordinate arrays.

    The sampled indices of vector i lie along the major axis; vector i itself
    is the i-th row or column along the minor axis.
    """
    require(S.rows is not None, "fill_sparse needs allocated arrays; call S.realize() instead.")
    D = S.dist
    if D.major_is_rows:
        major, minor = S.rows, S.cols
    else:
        major, minor = S.cols, S.rows
    repeated_fisher_yates(S.seed_state, D.vec_nnz, D.dim_major, D.dim_minor, major, minor, S.vals)
    S.known_filled = True
    return S


def nnz(S: SparseSkOp) -> int:
    return S.dist.full_nnz


def has_fixed_nnz_per_col(S: SparseSkOp) -> bool:
    return S.dist.major_is_rows


def coo_view_of_skop(S: SparseSkOp) -> COOView:
    """Coordinate view of S, sampling it first if necessary."""
    S.realize()
    k = S.dist.full_nnz
    arrays = []
    for arr in (S.vals, S.rows, S.cols):
        view = arr[:k].view()
        view.flags.writeable = False
        arrays.append(view)
    return COOView(S.n_rows, S.n_cols, k, *arrays)


def transpose(S: SparseSkOp) -> SparseSkOp:
    """
    A SparseSkOp representing S^T.

    The result shares S's coordinate arrays (rows and cols swap roles) and
    never releases them. S must already be sampled.
    """
    require(S.known_filled, "Cannot transpose a SparseSkOp that has not been sampled.")
    return SparseSkOp(
        S.dist.transposed(), S.seed_state,
        rows=S.cols, cols=S.rows, vals=S.vals,
        known_filled=True, next_state=S.next_state
    )
