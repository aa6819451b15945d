import os
import time
import argparse
import yaml
import json
import numpy as np
import pandas as pd
import xgboost as xgb
from pathlib import Path
from types import SimpleNamespace
from sklearn.metrics import roc_auc_score
from logging import ERROR

from prepare_inputs import prepare_matrices, feature_columns, to_feature_array, ID_COLUMN, LABEL_COLUMN
from grid_search import DEFAULT_GRID, RAND_SEED, expand_grid, grid_search, select_best, results_to_frame
from final_model import train_final_model, dump_model, feature_importance, predict_test, write_submission
from utils import SolutionLogger, FeatureImportancePlotter, MetricPlotter, save_model, load_model

MODEL_DEFAULTS = {
    'grid': DEFAULT_GRID,
    'num_boost_round': 500,
    'nfold': 10,
    'early_stopping_rounds': 50,
    'cv_metrics': ['auc', 'error'],
    'eval_metrics': ['logloss', 'auc'],
    'nthread': 4,
    'seed': RAND_SEED,
}
DATASET_DEFAULTS = {
    'id_column': ID_COLUMN,
    'label_column': LABEL_COLUMN,
}
OUTPUT_DEFAULTS = {
    'output_dir': 'output',
    'log_file': 'log_xgb_solution.txt',
    'submission_prefix': 'submission',
}
N_TOP_FEATURES = 15


def generate_solution(train, valid, test, dataset_params, model_params, output_params, lgr, plot=True, date=None):
    output_dir = Path(output_params.output_dir)
    os.makedirs(output_dir, exist_ok=True)

    # data preparation
    matrices = prepare_matrices(train, valid, test, dataset_params.id_column, dataset_params.label_column)
    lgr.log(f'Inputs: {matrices.feature_names}', just_write=True)

    # grid search over the hyperparameter combinations
    combinations = expand_grid(model_params.grid)
    lgr.log(f'Grid Search: {len(combinations)} combinations, {model_params.nfold}-fold x-val, '
            f'up to {model_params.num_boost_round} rounds')
    start = time.perf_counter()
    results = grid_search(
        matrices.dtrain,
        combinations,
        num_boost_round=model_params.num_boost_round,
        nfold=model_params.nfold,
        early_stopping_rounds=model_params.early_stopping_rounds,
        metrics=model_params.cv_metrics,
        nthread=model_params.nthread,
        seed=model_params.seed,
        verbose_eval=50 if lgr.verbose else False,
    )
    lgr.log(f'Elapsed Grid Search Time = {round(time.perf_counter() - start)}s')

    leaderboard_file = output_dir / 'grid_search_results.csv'
    results_to_frame(results).to_csv(leaderboard_file, index=False)
    lgr.log(f'Grid Search Results File: {leaderboard_file}')

    # model selection
    selected = select_best(results)
    lgr.log(f'Selected Configuration:\n{json.dumps(selected.params.to_params(), indent=4)}')
    lgr.log(f'  - best round: {selected.best_round}')
    lgr.log(f'  - x-val AUC: {selected.auc:.5f} (+/- {selected.auc_std:.5f})')
    lgr.log(f'  - x-val error: {selected.error:.5f}')

    # final training on the full training set
    lgr.log('Training Final Model (Full Training Set)', just_print=True)
    start = time.perf_counter()
    booster, evals_result = train_final_model(
        selected.params,
        selected.best_round,
        matrices.dtrain,
        matrices.dvalid,
        nthread=model_params.nthread,
        seed=model_params.seed,
        eval_metrics=model_params.eval_metrics,
        verbose_eval=50 if lgr.verbose else False,
    )
    lgr.log(f'Elapsed Training Time = {round(time.perf_counter() - start)}s')
    save_model(booster, output_dir / 'models', lgr=lgr)

    valid_auc = roc_auc_score(matrices.dvalid.get_label(), booster.predict(matrices.dvalid))
    lgr.log(f'Hold-out Validation AUC: {valid_auc:.5f}')

    # reporting
    model_dump = dump_model(booster)
    lgr.log(f'Model Dump: {len(model_dump)} trees', just_write=True)
    importance = feature_importance(booster, matrices.feature_names)
    lgr.log(f'Feature Importance (top {N_TOP_FEATURES}):\n'
            f'{importance.head(N_TOP_FEATURES).to_string(index=False, float_format="%.4f")}')

    if plot:
        plot_dir = output_dir / 'plots'
        plot_dir.mkdir(exist_ok=True)
        feat_imp = FeatureImportancePlotter()
        feat_imp.add_model(importance)
        feat_imp.save(plot_dir / 'feature_importance.pdf')
        metric_curves = MetricPlotter()
        metric_curves.add_evals(evals_result)
        metric_curves.save(plot_dir / 'metrics.pdf')

    # predictions for the test set
    predictions = predict_test(booster, matrices.dtest, matrices.test_ids)
    submission_file = write_submission(predictions, output_dir, date=date, prefix=output_params.submission_prefix)

    return SimpleNamespace(
        matrices=matrices,
        results=results,
        selected=selected,
        booster=booster,
        evals_result=evals_result,
        importance=importance,
        predictions=predictions,
        submission_file=submission_file,
    )


def predict_cached(test, cached_model, dataset_params, output_params, lgr, date=None):
    booster = load_model(cached_model)
    lgr.log(f'Running Inference with Model {cached_model}')

    features = feature_columns(test, dataset_params.id_column, dataset_params.label_column)
    if booster.feature_names and list(booster.feature_names) != features:
        raise KeyError(f'Test features {features} do not match model features {booster.feature_names}')

    dtest = xgb.DMatrix(to_feature_array(test, features, 'test'), missing=np.nan, feature_names=features)
    predictions = predict_test(booster, dtest, test[dataset_params.id_column].to_numpy())
    submission_file = write_submission(predictions, output_params.output_dir, date=date,
                                       prefix=output_params.submission_prefix)
    return predictions, submission_file


def load_params(cfg):
    dataset_params = argparse.Namespace(**{**DATASET_DEFAULTS, **cfg['datasets']})
    model_params = argparse.Namespace(**{**MODEL_DEFAULTS, **(cfg.get('model') or {})})
    output_params = argparse.Namespace(**{**OUTPUT_DEFAULTS, **(cfg.get('output') or {})})
    output_params.output_dir = Path(output_params.output_dir)
    return dataset_params, model_params, output_params


def main(args):
    with open(args.config, 'r') as f:
        cfg_str = f.read()
    cfg = yaml.safe_load(cfg_str)

    dataset_params, model_params, output_params = load_params(cfg)

    if args.debug:
        args.verbose = True
        output_params.output_dir = Path('outputs/tmp')
        model_params.grid = {k: list(v)[:1] for k, v in model_params.grid.items()}
        model_params.num_boost_round = min(model_params.num_boost_round, 50)

    os.makedirs(output_params.output_dir, exist_ok=True)
    lgr = SolutionLogger(
        output_params.output_dir / output_params.log_file,
        verbose=args.verbose,
        append=bool(args.cached_model),
    )
    lgr.log(f'Configuration File:\ncfg_path: {args.config}\n{cfg_str}\n', just_write=True)

    try:
        lgr.log(f'Test File: {dataset_params.test_file}')
        test = pd.read_csv(dataset_params.test_file)

        if args.cached_model:
            cached_model = output_params.output_dir if args.cached_model is True else Path(args.cached_model)
            predict_cached(test, cached_model, dataset_params, output_params, lgr)
            return

        lgr.log(f'Train File: {dataset_params.train_file}')
        lgr.log(f'Validation File: {dataset_params.valid_file}')
        train = pd.read_csv(dataset_params.train_file)
        valid = pd.read_csv(dataset_params.valid_file)

        generate_solution(train, valid, test, dataset_params, model_params, output_params, lgr, plot=args.plot)
    except Exception as e:
        lgr.log(f'Solution failed: {e!r}', level=ERROR)
        raise
    finally:
        lgr.close()


def cli():
    parser = argparse.ArgumentParser()
    parser.add_argument('-c', '--config', dest='config',
        type=str, required=True, help='solution configuration file (.yml)')
    parser.add_argument('-np', '--no_plot', dest='plot',
        action='store_false', help='dont add plots to output directory')
    parser.add_argument('-v', '--verbose', dest='verbose',
        action='store_true', help='print parameters and training progress to stdout')
    parser.add_argument('-cm', '--cached_model', dest='cached_model', nargs='?',
        const=True, default=False, help='only run prediction on the test set with a cached model, no retraining')
    parser.add_argument('-db', '--debug', dest='debug',
        action='store_true', help='debug mode: verbose, first grid combination only, few rounds')
    args, _ = parser.parse_known_args()

    main(args)


if __name__ == '__main__':
    cli()
