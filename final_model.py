import logging

import numpy as np
import pandas as pd
import xgboost as xgb

from grid_search import OBJECTIVE, RAND_SEED
from utils import make_submission_path

logger = logging.getLogger('xgb_solution.final_model')

IMPORTANCE_TYPES = {'Gain': 'total_gain', 'Cover': 'total_cover', 'Frequency': 'weight'}


def train_final_model(hyper_params, num_rounds, dtrain, dvalid, nthread=4, seed=RAND_SEED,
                      eval_metrics=('logloss', 'auc'), verbose_eval=False):
    """
    Fit on the full training matrix for exactly `num_rounds` rounds.

    The validation matrix is only watched: its per-round metrics end up in
    the returned evals_result and never stop the fit early.
    """
    if num_rounds < 1:
        raise ValueError(f'Number of boosting rounds must be >= 1, got {num_rounds}')

    params = {
        'booster': 'gbtree',
        'objective': OBJECTIVE,
        'eval_metric': list(eval_metrics),
        'nthread': nthread,
        'seed': seed,
        **hyper_params.to_params(),
    }
    evals_result = {}
    booster = xgb.train(
        params,
        dtrain,
        num_boost_round=int(num_rounds),
        evals=[(dtrain, 'train'), (dvalid, 'valid')],
        evals_result=evals_result,
        verbose_eval=verbose_eval,
    )

    for watch_name, metrics in evals_result.items():
        summary = ' '.join(f'{metric}={values[-1]:.5f}' for metric, values in metrics.items())
        logger.info(f'Final model [{watch_name}] after {num_rounds} rounds: {summary}')

    return booster, evals_result


def dump_model(booster):
    return booster.get_dump(with_stats=True)


def feature_importance(booster, feature_names=None):
    scores = {col: booster.get_score(importance_type=imp_type) for col, imp_type in IMPORTANCE_TYPES.items()}
    used = list(scores['Gain'])
    if feature_names is not None:
        used = [feat for feat in feature_names if feat in scores['Gain']]

    importance = pd.DataFrame({'Feature': used})
    for col, values in scores.items():
        column = np.array([values.get(feat, 0.) for feat in used], dtype=np.float64)
        total = column.sum()
        importance[col] = column / total if total > 0 else column

    return importance.sort_values('Gain', ascending=False, kind='stable').reset_index(drop=True)


def predict_test(booster, dtest, test_ids):
    test_ids = np.asarray(test_ids)
    if dtest.num_row() != len(test_ids):
        raise ValueError(f'Test matrix has {dtest.num_row()} rows but {len(test_ids)} identifiers were given')

    predictions = booster.predict(dtest)
    return pd.DataFrame({'test_id': test_ids, 'predictions': predictions.astype(np.float64)})


def write_submission(predictions, output_dir, date=None, prefix='submission'):
    output_file = make_submission_path(output_dir, date=date, prefix=prefix)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    predictions.to_csv(output_file, index=False)
    logger.info(f'Submission File: {output_file} ({len(predictions)} rows)')
    return output_file
