# conftest.py
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pytest

@pytest.fixture(autouse=True)
def mpl_test_backend():
    """Non-interactive backend for all tests; close figures afterwards."""
    matplotlib.use('Agg')
    yield
    plt.close('all')

@pytest.fixture
def rng():
    return np.random.default_rng(20170321)
