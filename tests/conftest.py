import matplotlib
matplotlib.use("Agg")

import pytest

from semma_kfold.stages.sample import make_demo_data, encode_target


@pytest.fixture(scope="session")
def demo():
    return encode_target(make_demo_data(n=1200, seed=7), "BAD")


@pytest.fixture
def demo_df(demo):
    return demo.copy()
