from .base import SketchingOperator
from .dense import (
    DenseDist, DenseSkOp, dense_next_state, dist_to_layout, realize_full, submatrix_as_blackbox
)
from .sparse import (
    COOView, SparseDist, SparseSkOp, coo_view_of_skop, fill_sparse, has_fixed_nnz_per_col,
    isometry_scale_factor, nnz, transpose
)

__all__ = [
    'SketchingOperator',
    'DenseDist', 'DenseSkOp', 'dense_next_state', 'dist_to_layout', 'realize_full',
    'submatrix_as_blackbox',
    'COOView', 'SparseDist', 'SparseSkOp', 'coo_view_of_skop', 'fill_sparse',
    'has_fixed_nnz_per_col', 'isometry_scale_factor', 'nnz', 'transpose',
]
