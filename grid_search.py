import itertools
import logging
from dataclasses import dataclass, fields, asdict
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np
import pandas as pd
import xgboost as xgb
from sklearn.model_selection import StratifiedKFold

logger = logging.getLogger('xgb_solution.grid_search')
# per-combination parameter lines, printed even when not verbose
progress_logger = logging.getLogger('xgb_solution.progress')

RAND_SEED = 271996
OBJECTIVE = 'binary:logistic'

# initial grid: tree depth, learning rate, row/column subsampling and
# regularisation, with gamma and alpha held at single values
DEFAULT_GRID = {
    'max_depth':        [6, 8, 10],
    'eta':              [0.01, 0.05],
    'subsample':        [0.75, 1.0],
    'colsample_bytree': [0.6, 0.8],
    'gamma':            [0.05],
    'min_child_weight': [1.36, 2],
    'alpha':            [0],
}


@dataclass(frozen=True)
class HyperParams:
    max_depth: int
    eta: float
    subsample: float
    colsample_bytree: float
    gamma: float
    min_child_weight: float
    alpha: float

    def to_params(self) -> Dict[str, float]:
        params = asdict(self)
        params['max_depth'] = int(self.max_depth)
        return params

    def describe(self) -> str:
        return (f'Depth: {self.max_depth} Eta: {self.eta} Subsample: {self.subsample} '
                f'Colsample: {self.colsample_bytree} Gamma: {self.gamma} '
                f'Minchild weight: {self.min_child_weight} Alpha: {self.alpha}')


@dataclass(frozen=True)
class CVResult:
    params: HyperParams
    best_round: int
    auc: float
    auc_std: float
    error: float
    n_rounds: int
    error_round: int


def param_names() -> List[str]:
    return [f.name for f in fields(HyperParams)]


def expand_grid(grid: Mapping[str, Sequence[float]] = DEFAULT_GRID) -> List[HyperParams]:
    """
    Cartesian product of the grid values in canonical order: keys follow the
    HyperParams field order and the last field varies fastest.
    """
    names = param_names()
    missing = [name for name in names if name not in grid]
    unknown = [key for key in grid if key not in names]
    if missing or unknown:
        raise KeyError(f'Invalid hyperparameter grid: missing={missing} unknown={unknown}')

    value_lists = [list(grid[name]) for name in names]
    for name, values in zip(names, value_lists):
        if not values:
            raise ValueError(f"No values given for hyperparameter '{name}'")

    return [HyperParams(*combo) for combo in itertools.product(*value_lists)]


class ErrorEarlyStopping(xgb.callback.TrainingCallback):
    """
    Stops cross-validation once the mean validation `metric` has not improved
    (strictly decreased) for `rounds` consecutive rounds.

    Every round's mean and std are kept in `history`, so the log runs up to
    the stopping round rather than being cut back to the best one.
    """
    def __init__(self, rounds, metric='error', data_name='test'):
        self.rounds = rounds
        self.metric = metric
        self.data_name = data_name
        self.history = {}
        self.best_score = np.inf
        self.best_round = 0
        super().__init__()

    def before_training(self, model):
        self.history = {}
        self.best_score = np.inf
        self.best_round = 0
        return model

    def after_iteration(self, model, epoch, evals_log):
        for metric, values in evals_log[self.data_name].items():
            # cv logs (mean, std) pairs
            mean, std = values[-1] if isinstance(values[-1], tuple) else (values[-1], 0.)
            self.history.setdefault(f'{metric}-mean', []).append(float(mean))
            self.history.setdefault(f'{metric}-std', []).append(float(std))

        score = self.history[f'{self.metric}-mean'][-1]
        if score < self.best_score:
            self.best_score = score
            self.best_round = epoch + 1

        stop = self.rounds is not None and epoch + 1 - self.best_round >= self.rounds
        if stop:
            # xgboost.cv trims its table to best_iteration on a stop, keep all rows
            model.set_attr(best_iteration=str(epoch))
        return stop


def run_cv(dtrain, hyper_params, num_boost_round=500, nfold=10, early_stopping_rounds=50,
           metrics=('auc', 'error'), nthread=4, seed=RAND_SEED, verbose_eval=False):
    """
    K-fold cross-validation of one hyperparameter combination.

    Early stopping watches the last entry of `metrics` (validation error by
    default, minimised). The log is kept through the stopping round, which is
    `early_stopping_rounds` past the lowest error. Best AUC round and final
    AUC/error are taken over that whole log.
    """
    params = {
        'objective': OBJECTIVE,
        'nthread': nthread,
        'seed': seed,
        **hyper_params.to_params(),
    }
    folds = StratifiedKFold(n_splits=nfold, shuffle=True, random_state=seed)
    stopper = ErrorEarlyStopping(early_stopping_rounds, metric=list(metrics)[-1])

    xgb.cv(
        params,
        dtrain,
        num_boost_round=num_boost_round,
        folds=folds,
        metrics=list(metrics),
        show_stdv=True,
        as_pandas=True,
        verbose_eval=verbose_eval,
        seed=seed,
        callbacks=[stopper],
    )

    cv_log = stopper.history
    auc_mean = np.asarray(cv_log['auc-mean'])
    best_round = int(np.argmax(auc_mean)) + 1

    return CVResult(
        params=hyper_params,
        best_round=best_round,
        auc=float(auc_mean[-1]),
        auc_std=cv_log['auc-std'][-1],
        error=cv_log['error-mean'][-1],
        n_rounds=len(auc_mean),
        error_round=stopper.best_round,
    )


def grid_search(dtrain, combinations: Iterable[HyperParams], **cv_kwargs) -> Dict[HyperParams, CVResult]:
    results = {}
    combinations = list(combinations)
    for i, hyper_params in enumerate(combinations):
        progress_logger.info(f'[{i+1}/{len(combinations)}] {hyper_params.describe()}')
        result = run_cv(dtrain, hyper_params, **cv_kwargs)
        logger.info(f'  -> best round: {result.best_round} AUC: {result.auc:.5f} '
                    f'(+/- {result.auc_std:.5f}) error: {result.error:.5f} '
                    f'stopped after {result.n_rounds} rounds')
        results[hyper_params] = result
    return results


def select_best(results: Mapping[HyperParams, CVResult]) -> CVResult:
    """
    Combination with the highest mean validation AUC. Ties go to the first
    combination in grid order.
    """
    if not results:
        raise ValueError('No cross-validation results to select from')

    best = None
    for result in results.values():
        if best is None or result.auc > best.auc:
            best = result

    n_tied = sum(1 for result in results.values() if result.auc == best.auc)
    if n_tied > 1:
        logger.warning(f'{n_tied} combinations tied at AUC {best.auc:.5f}, keeping the first')

    return best


def results_to_frame(results: Mapping[HyperParams, CVResult]) -> pd.DataFrame:
    rows = []
    for hyper_params, result in results.items():
        row = asdict(hyper_params)
        row.update({
            'best_round': result.best_round,
            'auc': result.auc,
            'auc_std': result.auc_std,
            'error': result.error,
            'n_rounds': result.n_rounds,
            'error_round': result.error_round,
        })
        rows.append(row)
    return pd.DataFrame(rows, columns=param_names() + ['best_round', 'auc', 'auc_std', 'error', 'n_rounds',
                                                       'error_round'])
