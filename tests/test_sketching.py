import numpy as np
import pytest
from scipy import sparse

from randsketch import dense_apply
from randsketch.base import Layout, Op, dims_before_op
from randsketch.blas import matrix_view
from randsketch.dense_fill import DenseDistName
from randsketch.metric import buffs_approx_equal
from randsketch.operators import DenseDist, DenseSkOp, SparseDist, SparseSkOp, submatrix_as_blackbox
from randsketch.sketching import (
    left_apply, right_apply, sketch_general, sketch_general_right, sketch_sparse,
    sketch_sparse_right
)
from randsketch.utils import genmat, reference_left_apply, reference_right_apply

from conftest import as_matrix, leading_dim

OPS = [Op.NoTrans, Op.Trans]


def make_operator(kind, rows, cols, seed=0, materialize=False):
    if kind == 'dense':
        S = DenseSkOp(DenseDist(rows, cols, DenseDistName.Gaussian), seed)
    else:
        S = SparseSkOp(SparseDist(rows, cols, 2), seed)
    if materialize:
        S.realize()
    return S


def twin(S):
    """An independent operator with the same distribution and seed."""
    return type(S)(S.dist, S.seed_state)


class TestIdentity:
    @pytest.mark.parametrize("materialize", [False, True])
    def test_apply_to_identity_gives_explicit_operator(self, materialize):
        d, m = 30, 200
        S = make_operator('dense', d, m, 0, materialize)
        A = np.eye(m).ravel(order='F')
        B = np.zeros(d * m)
        expected, bound = reference_left_apply(
            Layout.ColMajor, Op.NoTrans, Op.NoTrans, d, m, m, 1.0, S, 0, 0, A, m, 0.0, B, d)
        sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, d, m, m, 1.0, S, 0, 0, A, m, 0.0, B, d)
        result = matrix_view(B, Layout.ColMajor, d, m, d)
        buffs_approx_equal(result, expected, bound)
        explicit = S.to_dense()
        buffs_approx_equal(result, explicit, np.abs(explicit) * m * 2 * np.finfo(float).eps)
        assert S.is_materialized == materialize

    def test_sparse_apply_to_identity(self, layout):
        d, m = 7, 20
        S = make_operator('sparse', d, m, 3)
        A = np.eye(m).ravel()
        B = np.zeros(d * m)
        ldb = leading_dim(layout, d, m)
        sketch_general(layout, Op.NoTrans, Op.NoTrans, d, m, m, 1.0, S, 0, 0, A, m, 0.0, B, ldb)
        assert np.array_equal(as_matrix(B, layout, d, m), twin(S).to_dense())
        assert not S.is_materialized


@pytest.mark.parametrize("kind", ['dense', 'sparse'])
@pytest.mark.parametrize("materialize", [False, True])
@pytest.mark.parametrize("op_s", OPS)
@pytest.mark.parametrize("op_a", OPS)
class TestSubmatrixProducts:
    def test_left(self, layout, kind, materialize, op_s, op_a):
        d, n, m = 12, 9, 15
        ro_s, co_s = 2, 1
        rows_s, cols_s = dims_before_op(d, m, op_s)
        S = make_operator(kind, rows_s + 3, cols_s + 2, 11, materialize)
        rows_a, cols_a = dims_before_op(m, n, op_a)
        A, _ = genmat(rows_a, cols_a, 1, layout)
        B, _ = genmat(d, n, 2, layout)
        lda, ldb = leading_dim(layout, rows_a, cols_a), leading_dim(layout, d, n)
        expected, bound = reference_left_apply(
            layout, op_s, op_a, d, n, m, 2.0, twin(S), ro_s, co_s, A, lda, 0.5, B, ldb)
        sketch_general(layout, op_s, op_a, d, n, m, 2.0, S, ro_s, co_s, A, lda, 0.5, B, ldb)
        buffs_approx_equal(as_matrix(B, layout, d, n), expected, bound)

    def test_right(self, layout, kind, materialize, op_s, op_a):
        m, d, n = 10, 6, 14
        ro_s, co_s = 1, 3
        rows_s, cols_s = dims_before_op(n, d, op_s)
        S = make_operator(kind, rows_s + 2, cols_s + 4, 12, materialize)
        rows_a, cols_a = dims_before_op(m, n, op_a)
        A, _ = genmat(rows_a, cols_a, 3, layout)
        B, _ = genmat(m, d, 4, layout)
        lda, ldb = leading_dim(layout, rows_a, cols_a), leading_dim(layout, m, d)
        expected, bound = reference_right_apply(
            layout, op_a, op_s, m, d, n, 2.0, A, lda, twin(S), ro_s, co_s, 0.5, B, ldb)
        sketch_general_right(layout, op_a, op_s, m, d, n, 2.0, A, lda, S, ro_s, co_s, 0.5, B, ldb)
        buffs_approx_equal(as_matrix(B, layout, m, d), expected, bound)


@pytest.mark.parametrize("kind", ['dense', 'sparse'])
def test_layout_transpose_symmetry(kind):
    # A RowMajor d x n result has the same bytes as its ColMajor transpose.
    d, n, m = 8, 11, 25
    S = make_operator(kind, d, m, 5, materialize=True)
    A, _ = genmat(m, n, 6, Layout.RowMajor)
    B_row = np.zeros(d * n)
    B_col = np.zeros(d * n)
    sketch_general(Layout.RowMajor, Op.NoTrans, Op.NoTrans, d, n, m, 1.0, S, 0, 0, A, n, 0.0, B_row, n)
    sketch_general_right(Layout.ColMajor, Op.NoTrans, Op.Trans, n, d, m, 1.0, A, n, S, 0, 0, 0.0, B_col, n)
    np.testing.assert_allclose(B_row, B_col, rtol=1e-12, atol=1e-12)


class TestScalars:
    @pytest.mark.parametrize("kind", ['dense', 'sparse'])
    def test_beta_zero_ignores_output_contents(self, kind):
        S = make_operator(kind, 4, 6)
        A, _ = genmat(6, 3, 1)
        B = np.full(12, np.nan)
        sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 6, 1.0, S, 0, 0, A, 6, 0.0, B, 4)
        assert np.all(np.isfinite(B))

    @pytest.mark.parametrize("kind", ['dense', 'sparse'])
    def test_alpha_zero_scales_output(self, kind):
        S = make_operator(kind, 4, 6)
        A, _ = genmat(6, 3, 1)
        B = np.arange(12.0)
        sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 6, 0.0, S, 0, 0, A, 6, 2.0, B, 4)
        assert np.array_equal(B, 2.0 * np.arange(12.0))


class TestPreconditions:
    @pytest.mark.parametrize("kind", ['dense', 'sparse'])
    def test_submatrix_out_of_bounds(self, kind):
        S = make_operator(kind, 4, 6)
        A, B = np.zeros(18), np.zeros(12)
        with pytest.raises(ValueError):
            sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 6, 1.0, S, 1, 0, A, 6, 0.0, B, 4)
        with pytest.raises(ValueError):
            sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 5, 1.0, S, 0, 2, A, 5, 0.0, B, 4)
        with pytest.raises(ValueError):
            sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 0, 3, 6, 1.0, S, 0, 0, A, 6, 0.0, B, 4)

    def test_leading_dimension_too_small(self):
        S = make_operator('dense', 4, 6, materialize=True)
        with pytest.raises(ValueError):
            sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 6, 1.0, S, 0, 0,
                           np.zeros(18), 5, 0.0, np.zeros(12), 4)

    @pytest.mark.parametrize("kind", ['dense', 'sparse'])
    @pytest.mark.parametrize("materialize", [False, True])
    def test_leading_dimension_checked_when_alpha_is_zero(self, kind, materialize):
        S = make_operator(kind, 4, 6, materialize=materialize)
        B = np.arange(12.0)
        with pytest.raises(ValueError):
            sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 6, 0.0, S, 0, 0,
                           np.zeros(18), 5, 1.0, B, 4)
        assert np.array_equal(B, np.arange(12.0))

        T = make_operator(kind, 6, 4, materialize=materialize)
        with pytest.raises(ValueError):
            sketch_general_right(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 3, 4, 6, 0.0,
                                 np.zeros(18), 2, T, 0, 0, 1.0, B, 3)
        assert np.array_equal(B, np.arange(12.0))

    def test_scratch_submatrix_released_on_error(self, monkeypatch):
        scratch = []

        def recording_blackbox(*args, **kwargs):
            sub = submatrix_as_blackbox(*args, **kwargs)
            scratch.append(sub)
            return sub

        monkeypatch.setattr(dense_apply, "submatrix_as_blackbox", recording_blackbox)
        S = make_operator('dense', 4, 6)
        with pytest.raises(ValueError):
            sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 6, 1.0, S, 0, 0,
                           np.zeros(18), 5, 0.0, np.zeros(12), 4)
        assert len(scratch) == 1
        assert not scratch[0].is_materialized
        assert not S.is_materialized

    def test_unsupported_operator(self):
        with pytest.raises(TypeError):
            sketch_general(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 2, 2, 2, 1.0, np.eye(2), 0, 0,
                           np.zeros(4), 2, 0.0, np.zeros(4), 2)

    def test_sparse_data_needs_dense_operator(self):
        S = make_operator('sparse', 4, 6)
        with pytest.raises(TypeError):
            sketch_sparse(Layout.ColMajor, Op.NoTrans, Op.NoTrans, 4, 3, 6, 1.0, S, 0, 0,
                          sparse.eye(6, 3, format='csr'), 0, 0, 0.0, np.zeros(12), 4)


@pytest.mark.parametrize("op_s", OPS)
@pytest.mark.parametrize("op_a", OPS)
class TestSparseData:
    def test_left(self, layout, op_s, op_a):
        d, n, m = 5, 7, 9
        rows_s, cols_s = dims_before_op(d, m, op_s)
        S = make_operator('dense', rows_s + 1, cols_s + 1, 21)
        rows_a, cols_a = dims_before_op(m, n, op_a)
        A = sparse.random(rows_a + 3, cols_a + 2, density=0.3, format='csr', random_state=0)
        B, _ = genmat(d, n, 2, layout)
        B0 = as_matrix(B, layout, d, n).copy()
        ldb = leading_dim(layout, d, n)
        sketch_sparse(layout, op_s, op_a, d, n, m, 2.0, S, 1, 1, A, 3, 2, 0.5, B, ldb)
        sub_s = S.to_dense()[1:1 + rows_s, 1:1 + cols_s]
        sub_a = A.toarray()[3:3 + rows_a, 2:2 + cols_a]
        S_op = sub_s.T if op_s == Op.Trans else sub_s
        A_op = sub_a.T if op_a == Op.Trans else sub_a
        expected = 2.0 * S_op @ A_op + 0.5 * B0
        np.testing.assert_allclose(as_matrix(B, layout, d, n), expected, rtol=1e-12, atol=1e-12)
        assert not S.is_materialized

    def test_right(self, layout, op_s, op_a):
        m, d, n = 6, 4, 8
        rows_s, cols_s = dims_before_op(n, d, op_s)
        S = make_operator('dense', rows_s + 2, cols_s, 22, materialize=True)
        rows_a, cols_a = dims_before_op(m, n, op_a)
        A = sparse.random(rows_a + 1, cols_a + 1, density=0.4, format='csc', random_state=1)
        B = np.zeros(m * d)
        ldb = leading_dim(layout, m, d)
        sketch_sparse_right(layout, op_a, op_s, m, d, n, 1.0, A, 1, 0, S, 2, 0, 0.0, B, ldb)
        sub_s = S.to_dense()[2:2 + rows_s, :cols_s]
        sub_a = A.toarray()[1:1 + rows_a, :cols_a]
        S_op = sub_s.T if op_s == Op.Trans else sub_s
        A_op = sub_a.T if op_a == Op.Trans else sub_a
        np.testing.assert_allclose(as_matrix(B, layout, m, d), A_op @ S_op, rtol=1e-12, atol=1e-12)


class TestShortForms:
    @pytest.mark.parametrize("kind", ['dense', 'sparse'])
    def test_left_apply(self, layout, kind):
        S = make_operator(kind, 6, 20, 8)
        A = np.arange(60.0).reshape(20, 3)
        out = left_apply(S, A, layout=layout)
        np.testing.assert_allclose(out, twin(S).to_dense() @ A, rtol=1e-12, atol=1e-9)
        out_t = left_apply(S, A.T, op_a=Op.Trans, layout=layout)
        np.testing.assert_allclose(out_t, out, rtol=1e-12, atol=1e-9)

    @pytest.mark.parametrize("kind", ['dense', 'sparse'])
    def test_right_apply(self, kind):
        S = make_operator(kind, 20, 6, 8)
        A = np.arange(60.0).reshape(3, 20)
        out = right_apply(A, S)
        np.testing.assert_allclose(out, A @ twin(S).to_dense(), rtol=1e-12, atol=1e-9)

    def test_sparse_data_short_forms(self):
        S = make_operator('dense', 6, 20, 8)
        A = sparse.random(20, 5, density=0.5, format='csr', random_state=2)
        np.testing.assert_allclose(left_apply(S, A), S.to_dense() @ A.toarray(), rtol=1e-12, atol=1e-12)
        np.testing.assert_allclose(right_apply(A.T, S, op_s=Op.Trans),
                                   A.toarray().T @ S.to_dense().T, rtol=1e-12, atol=1e-12)

    def test_dimension_mismatch(self):
        S = make_operator('dense', 6, 20)
        with pytest.raises(ValueError):
            left_apply(S, np.zeros((19, 3)))
        with pytest.raises(ValueError):
            right_apply(np.zeros((3, 19)), S)
