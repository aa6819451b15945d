import sys
import logging
import pickle
import numpy as np
from datetime import date as dt_date
from joblib import dump, load
from pathlib import Path
from logging import INFO

from plotting_scripts.feature_importance_plotter import plot_feature_importance
from plotting_scripts.metric_plotter import plot_metrics

LOGGER_NAME = 'xgb_solution'
SUBMISSION_PREFIX = 'submission'


class SolutionLogger():
    def __init__(self, filepath, verbose=True, append=False):
        self.filepath = filepath
        self.verbose = verbose

        # module loggers (xgb_solution.*) propagate into base_logger
        self.base_logger = logging.getLogger(LOGGER_NAME)
        self.base_logger.setLevel(logging.INFO)
        self.stdout_logger = logging.getLogger(f'{LOGGER_NAME}_stdout')
        self.stdout_logger.setLevel(logging.INFO)
        self.fout_logger = logging.getLogger(f'{LOGGER_NAME}_fout')
        self.fout_logger.setLevel(logging.INFO)
        # always printed; propagates into base_logger for the log file
        self.progress_logger = logging.getLogger(f'{LOGGER_NAME}.progress')
        self.progress_logger.setLevel(logging.INFO)
        self.formatter = logging.Formatter('%(levelname)s | %(asctime)s | %(message)s')

        # Clear existing handlers to prevent duplicates if logger is re-initialized
        for lgr in self.loggers:
            for handler in list(lgr.handlers):
                lgr.removeHandler(handler)
                handler.close()

        self.fh = logging.FileHandler(self.filepath, mode='a' if append else 'w')
        self.fh.setFormatter(self.formatter)
        self.fh.setLevel(logging.INFO)

        self.sh = logging.StreamHandler(sys.stdout)
        self.sh.setFormatter(self.formatter)
        self.sh.setLevel(logging.INFO)

        self.base_logger.addHandler(self.fh)
        if self.verbose:
            self.base_logger.addHandler(self.sh)
        else:
            self.progress_logger.addHandler(self.sh)
        self.stdout_logger.addHandler(self.sh)
        self.fout_logger.addHandler(self.fh)

    @property
    def loggers(self):
        return (self.base_logger, self.stdout_logger, self.fout_logger, self.progress_logger)

    def log(self, string, just_print=False, just_write=False, level=INFO):
        if just_print:
            if self.verbose:
                self.stdout_logger.log(level, string)
        elif just_write:
            self.fout_logger.log(level, string)
        else:
            self.base_logger.log(level, string)

    def close(self):
        for lgr in self.loggers:
            for handler in list(lgr.handlers):
                lgr.removeHandler(handler)
        self.fh.close()


class FeatureImportancePlotter():
    def __init__(self, top_n=30):
        self.top_n = top_n
        self.feature_data = None

    def add_model(self, importance):
        top = importance.head(self.top_n)
        self.feature_data = {
            'features': list(top['Feature']),
            'feature_imps': {col: top[col].to_numpy() for col in ('Gain', 'Cover', 'Frequency')},
        }

    def save_to_pickle(self, path):
        assert self.feature_data, 'No data available'

        path = Path(path)
        new_path = path.with_suffix('.pkl')

        with open(new_path, 'wb') as pkl_file:
            pickle.dump(self.feature_data, pkl_file)

    def save(self, path):
        assert self.feature_data, 'No data available'

        self.save_to_pickle(path)
        plot_feature_importance(self.feature_data, path)


class MetricPlotter():
    def __init__(self):
        self.metric_data = {}

    def add_evals(self, evals_result):
        for watch_name, metrics in evals_result.items():
            for metric, values in metrics.items():
                self.metric_data.setdefault(metric, {})[watch_name] = np.asarray(values, dtype=np.float64)

    def save_to_pickle(self, path):
        assert self.metric_data, 'No data available'

        path = Path(path)
        new_path = path.with_suffix('.pkl')
        with open(new_path, 'wb') as pkl_file:
            pickle.dump(self.metric_data, pkl_file)

    def save(self, path, show=False):
        assert self.metric_data, 'No data available'

        self.save_to_pickle(path)
        plot_metrics(self.metric_data, path, show=show)


# --- Helper Functions ---

def save_model(booster, output_dir, formats=('.json', '.pkl', '.txt'), lgr=None, prefix='model_final'):
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    saved = []
    for fmt in formats:
        out_path = output_dir / f'{prefix}{fmt}'
        if fmt in ('.json', '.ubj'):
            booster.save_model(out_path)
        elif fmt in ('.pkl', '.joblib'):
            dump(booster, out_path)
        elif fmt in ('.txt', '.text'):
            booster.dump_model(out_path, with_stats=True)
        else:
            raise ValueError(f'Unsupported model format: {fmt}')
        saved.append(out_path)
        if lgr:
            lgr.log(f'Model File: {out_path}')

    return saved


def load_model(filepath):
    from xgboost import Booster

    p = Path(filepath)
    if p.is_dir():
        p = p / 'models' / 'model_final.json'
    if not p.is_file():
        raise FileNotFoundError(f'No valid model file found at {filepath}')

    if p.suffix in ('.pkl', '.joblib'):
        booster = load(p)
    else:
        booster = Booster()
        booster.load_model(p)

    if not isinstance(booster, Booster):
        raise TypeError(f'Loaded object from {p} is not an XGBoost Booster')
    return booster


def make_submission_path(output_dir, date=None, prefix=SUBMISSION_PREFIX):
    date = date if date is not None else dt_date.today()
    return Path(output_dir) / f'{prefix}{date.strftime("%Y%m%d")}.csv'

