import os
import subprocess
import sys
from pathlib import Path

import numpy as np
import pytest

from randsketch.base import Layout, Op
from randsketch.metric import buffs_approx_equal, matrices_approx_equal, relative_error
from randsketch.operators import SparseDist, SparseSkOp
from randsketch.utils import genmat, save_timing_plot, time_repeats, to_explicit_buffer


class TestGenmat:
    def test_reproducible_and_bounded(self):
        a, state_a = genmat(5, 8, 3)
        b, state_b = genmat(5, 8, 3)
        assert np.array_equal(a, b) and state_a == state_b
        assert np.all(np.abs(a) < 1)

    def test_layouts_hold_the_same_matrix(self):
        col, _ = genmat(4, 7, 1, Layout.ColMajor)
        row, _ = genmat(4, 7, 1, Layout.RowMajor)
        assert np.array_equal(col.reshape(4, 7, order='F'), row.reshape(4, 7))

    def test_explicit_buffer_of_sparse_operator(self):
        S = SparseSkOp(SparseDist(3, 5, 2), 0)
        buf = to_explicit_buffer(S, Layout.RowMajor)
        assert buf.shape == (15,)
        assert np.count_nonzero(buf) == 10


class TestMetric:
    def test_buffs_approx_equal_reports_first_mismatch(self):
        expected = np.array([[1.0, 2.0], [3.0, 4.0]])
        actual = expected.copy()
        actual[1, 0] += 1e-3
        with pytest.raises(AssertionError, match=r"\(1, 0\)"):
            buffs_approx_equal(actual, expected)
        buffs_approx_equal(actual, expected, bound=np.full((2, 2), 1e-2))
        buffs_approx_equal(actual, expected, bound=1e-2)

    def test_shape_mismatch(self):
        with pytest.raises(AssertionError):
            buffs_approx_equal(np.zeros(3), np.zeros(4))

    def test_matrices_approx_equal_with_transpose(self):
        A, _ = genmat(3, 4, 0, Layout.ColMajor)
        At = np.ravel(A.reshape(3, 4, order='F').T, order='F')
        matrices_approx_equal(Layout.ColMajor, Op.Trans, 4, 3, A, 3, At, 4)
        with pytest.raises(AssertionError):
            matrices_approx_equal(Layout.ColMajor, Op.NoTrans, 3, 4, A, 3, At, 3)

    def test_relative_error(self):
        assert relative_error(np.ones(4), np.ones(4)) == 0.0
        assert relative_error(np.array([3.0, 4.0]), np.zeros(2)) == 5.0
        with pytest.raises(ValueError):
            relative_error(np.ones(2), np.ones(3))


class TestExperimentHelpers:
    def test_time_repeats(self):
        calls = []
        timings, result = time_repeats(lambda: calls.append(1) or len(calls), 3)
        assert len(timings) == 3 and result == 3
        assert all(t >= 0 for t in timings)

    def test_save_timing_plot(self, tmp_path):
        path = save_timing_plot([1, 2, 4], {"fill": [3.0, 1.6, 0.9]}, "timings", str(tmp_path))
        assert os.path.exists(path)

    def test_import_does_not_load_pyplot(self):
        code = "import sys, randsketch; print('matplotlib.pyplot' in sys.modules)"
        out = subprocess.run(
            [sys.executable, "-c", code], cwd=Path(__file__).resolve().parents[1],
            capture_output=True, text=True, check=True
        )
        assert out.stdout.strip() == "False"
