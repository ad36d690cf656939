from .base import Layout, Op, MajorAxis
from .config import ParallelConfig, num_threads
from .random_gen import CounterState, generate, u01, uneg11, boxmul
from .dense_fill import DenseDistName, fill_rsubmat, fill_rmat, fill_dense
from .sparse_sampling import repeated_fisher_yates
from .operators import (
    DenseDist, DenseSkOp, SparseDist, SparseSkOp, COOView,
    dist_to_layout, realize_full, submatrix_as_blackbox,
    fill_sparse, coo_view_of_skop, transpose, isometry_scale_factor
)
from .blas import gemm
from .sketching import (
    sketch_general, sketch_general_right, sketch_sparse, sketch_sparse_right,
    left_apply, right_apply
)
from .metric import relative_error, buffs_approx_equal, matrices_approx_equal
from .utils import genmat, to_explicit_buffer

__all__ = [
    'Layout', 'Op', 'MajorAxis',
    'ParallelConfig', 'num_threads',
    'CounterState', 'generate', 'u01', 'uneg11', 'boxmul',
    'DenseDistName', 'fill_rsubmat', 'fill_rmat', 'fill_dense',
    'repeated_fisher_yates',
    'DenseDist', 'DenseSkOp', 'SparseDist', 'SparseSkOp', 'COOView',
    'dist_to_layout', 'realize_full', 'submatrix_as_blackbox',
    'fill_sparse', 'coo_view_of_skop', 'transpose', 'isometry_scale_factor',
    'gemm',
    'sketch_general', 'sketch_general_right', 'sketch_sparse', 'sketch_sparse_right',
    'left_apply', 'right_apply',
    'relative_error', 'buffs_approx_equal', 'matrices_approx_equal',
    'genmat', 'to_explicit_buffer',
]
