import numpy as np
import pytest

from randsketch import Layout, ParallelConfig


@pytest.fixture(autouse=True)
def reset_threads():
    """Each test starts from the environment's thread setting."""
    ParallelConfig.reset()
    yield
    ParallelConfig.reset()


@pytest.fixture(params=[Layout.ColMajor, Layout.RowMajor], ids=['colmajor', 'rowmajor'])
def layout(request):
    return request.param


def leading_dim(layout, rows, cols):
    return rows if layout == Layout.ColMajor else cols


def as_matrix(buf, layout, rows, cols):
    return np.reshape(buf[:rows * cols], (rows, cols), order='F' if layout == Layout.ColMajor else 'C')
