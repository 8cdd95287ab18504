"""Shared synthetic fixtures: 2 monitored sites x 4 instances + 2 open sites.

Feature 0 separates every class (site 0 -> 0, site 1 -> 100, open sites ->
300 and 400), the remaining features are uniform noise in [0, 1).
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from scripts.wa_knn.config import ExperimentConfig
from scripts.wa_knn.data_loader import FeatureDataset

N_FEATURES = 8
SITE_VALUES = [0.0, 100.0]
OPEN_VALUES = [300.0, 400.0]


def make_matrices(seed=7, n_features=N_FEATURES, instances=4):
    rng = np.random.RandomState(seed)
    monitored = rng.uniform(0.0, 1.0, size=(len(SITE_VALUES) * instances, n_features))
    for site, value in enumerate(SITE_VALUES):
        monitored[site * instances:(site + 1) * instances, 0] = value
    unmonitored = rng.uniform(0.0, 1.0, size=(len(OPEN_VALUES), n_features))
    unmonitored[:, 0] = OPEN_VALUES
    return monitored, unmonitored


def write_vector(path, vec):
    path.write_text(" ".join(repr(float(v)) for v in vec) + "\n")


@pytest.fixture
def synthetic_cfg():
    return ExperimentConfig(
        sites=2, instances=4, open=2, folds=2, rounds=60,
        k_min=1, k_max=2, k_step=1, worker_factor=1,
        feat_num=N_FEATURES, quiet=True, seed=1234,
    )


@pytest.fixture
def synthetic_dataset(synthetic_cfg):
    monitored, unmonitored = make_matrices()
    return FeatureDataset(monitored, unmonitored, synthetic_cfg, open_sites=[10, 11])


@pytest.fixture
def synthetic_feature_dir(tmp_path):
    """The synthetic dataset written as .feat files (sites 1, 2; open 10, 11)."""
    monitored, unmonitored = make_matrices()
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    for row, vec in enumerate(monitored):
        site, inst = divmod(row, 4)
        write_vector(data_dir / f"{site + 1}-{inst}.feat", vec)
    for j, vec in enumerate(unmonitored):
        write_vector(data_dir / f"{10 + j}-0.feat", vec)
    return data_dir
