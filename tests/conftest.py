import argparse

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

from utils import SolutionLogger

N_FEATURES = 5


def make_frame(n_rows, rng, id_start, with_label=True):
    X = rng.normal(size=(n_rows, N_FEATURES))
    df = pd.DataFrame(X, columns=[f'feat_{i}' for i in range(N_FEATURES)])
    df.insert(0, 'id', np.arange(id_start, id_start + n_rows))
    if with_label:
        logit = 1.5 * X[:, 0] - X[:, 1] + 0.5 * rng.normal(size=n_rows)
        label = (logit > 0).astype(int)
        # both classes present in every split
        label[:2] = [0, 1]
        df['is_female'] = label
    return df


@pytest.fixture
def datasets():
    rng = np.random.RandomState(271996)
    train = make_frame(100, rng, 1)
    valid = make_frame(40, rng, 101)
    test = make_frame(20, rng, 5001, with_label=False)
    # identifiers deliberately out of order
    test['id'] = rng.permutation(test['id'].to_numpy())
    return train, valid, test


@pytest.fixture
def dataset_params():
    return argparse.Namespace(id_column='id', label_column='is_female')


@pytest.fixture
def lgr(tmp_path):
    logger = SolutionLogger(tmp_path / 'log.txt', verbose=False)
    yield logger
    logger.close()
