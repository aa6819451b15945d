import argparse

import pytest
import yaml

from final_model import train_final_model, feature_importance
from grid_search import HyperParams
from plotting_scripts import feature_importance_plotter, metric_plotter
from prepare_inputs import prepare_matrices
from utils import FeatureImportancePlotter, MetricPlotter


@pytest.fixture
def plot_pickles(tmp_path, datasets):
    matrices = prepare_matrices(*datasets)
    booster, evals_result = train_final_model(HyperParams(3, 0.1, 1.0, 1.0, 0.0, 1, 0), 8,
                                              matrices.dtrain, matrices.dvalid, nthread=1)
    plot_dir = tmp_path / 'output' / 'plots'
    plot_dir.mkdir(parents=True)

    feat_imp = FeatureImportancePlotter()
    feat_imp.add_model(feature_importance(booster, matrices.feature_names))
    feat_imp.save(plot_dir / 'feature_importance.pdf')
    metrics = MetricPlotter()
    metrics.add_evals(evals_result)
    metrics.save(plot_dir / 'metrics.pdf')

    config = tmp_path / 'config.yml'
    config.write_text(yaml.safe_dump({'output': {'output_dir': str(tmp_path / 'output')}}))
    return config, plot_dir


def test_feature_importance_replot_from_config(plot_pickles):
    config, plot_dir = plot_pickles
    args = argparse.Namespace(config=str(config), input_file=None, output=None, label='cover',
                              importance_type='Cover')

    output_file = feature_importance_plotter.main(args)

    assert output_file == plot_dir / 'feature_importance_cover.pdf'
    assert output_file.is_file()


def test_metric_replot_to_other_directory(tmp_path, plot_pickles):
    config, plot_dir = plot_pickles
    args = argparse.Namespace(config=str(config), input_file=str(plot_dir / 'metrics.pkl'),
                              output=str(tmp_path / 'replots'), label=None, logy=True)

    output_file = metric_plotter.main(args)

    assert output_file == tmp_path / 'replots' / 'metrics.pdf'
    assert output_file.is_file()


def test_replot_defaults_to_output_dir(tmp_path, plot_pickles, monkeypatch):
    _, plot_dir = plot_pickles
    config = tmp_path / 'bare.yml'
    config.write_text(yaml.safe_dump({'datasets': {'test_file': 'test.csv'}}))
    monkeypatch.chdir(tmp_path)
    args = argparse.Namespace(config=str(config), input_file=None, output=None, label=None, logy=False)

    output_file = metric_plotter.main(args)

    assert output_file.resolve() == (plot_dir / 'metrics.pdf').resolve()


def test_replot_missing_pickle_raises(tmp_path):
    config = tmp_path / 'config.yml'
    config.write_text(yaml.safe_dump({'output': {'output_dir': str(tmp_path / 'empty')}}))
    args = argparse.Namespace(config=str(config), input_file=None, output=None, label=None,
                              importance_type='Gain')

    with pytest.raises(FileNotFoundError, match='feature_importance.pkl'):
        feature_importance_plotter.main(args)
