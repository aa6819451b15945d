from datetime import date

import numpy as np
import pandas as pd
import pytest

from final_model import train_final_model, dump_model, feature_importance, predict_test, write_submission
from grid_search import HyperParams
from prepare_inputs import prepare_matrices

HP = HyperParams(4, 0.1, 0.75, 0.8, 0.05, 1, 0)


@pytest.fixture
def matrices(datasets):
    return prepare_matrices(*datasets)


def test_final_run_length_equals_rounds(matrices):
    booster, evals_result = train_final_model(HP, 17, matrices.dtrain, matrices.dvalid, nthread=1)

    assert booster.num_boosted_rounds() == 17
    assert set(evals_result) == {'train', 'valid'}
    assert set(evals_result['valid']) == {'logloss', 'auc'}
    assert len(evals_result['valid']['logloss']) == 17


def test_zero_rounds_raises(matrices):
    with pytest.raises(ValueError):
        train_final_model(HP, 0, matrices.dtrain, matrices.dvalid)


def test_predictions_in_unit_interval_and_ordered(datasets, matrices):
    booster, _ = train_final_model(HP, 10, matrices.dtrain, matrices.dvalid, nthread=1)
    predictions = predict_test(booster, matrices.dtest, matrices.test_ids)

    assert list(predictions.columns) == ['test_id', 'predictions']
    assert len(predictions) == len(datasets[2])
    np.testing.assert_array_equal(predictions['test_id'].to_numpy(), datasets[2]['id'].to_numpy())
    assert predictions['predictions'].between(0.0, 1.0).all()


def test_predict_length_mismatch_raises(matrices):
    booster, _ = train_final_model(HP, 3, matrices.dtrain, matrices.dvalid, nthread=1)
    with pytest.raises(ValueError):
        predict_test(booster, matrices.dtest, matrices.test_ids[:-1])


def test_retraining_with_fixed_seed_is_idempotent(matrices):
    first, _ = train_final_model(HP, 12, matrices.dtrain, matrices.dvalid, nthread=1, seed=7)
    second, _ = train_final_model(HP, 12, matrices.dtrain, matrices.dvalid, nthread=1, seed=7)

    pred_first = predict_test(first, matrices.dtest, matrices.test_ids)
    pred_second = predict_test(second, matrices.dtest, matrices.test_ids)
    pd.testing.assert_frame_equal(pred_first, pred_second)


def test_dump_has_one_tree_per_round(matrices):
    booster, _ = train_final_model(HP, 8, matrices.dtrain, matrices.dvalid, nthread=1)
    dump = dump_model(booster)

    assert len(dump) == 8
    assert 'gain=' in dump[0] and 'cover=' in dump[0]


def test_feature_importance(matrices):
    booster, _ = train_final_model(HP, 20, matrices.dtrain, matrices.dvalid, nthread=1)
    importance = feature_importance(booster, matrices.feature_names)

    assert list(importance.columns) == ['Feature', 'Gain', 'Cover', 'Frequency']
    assert set(importance['Feature']) <= set(matrices.feature_names)
    assert importance['Gain'].is_monotonic_decreasing
    for col in ('Gain', 'Cover', 'Frequency'):
        assert importance[col].sum() == pytest.approx(1.0)
    # label drives on feat_0 and feat_1
    assert importance['Feature'].iloc[0] in ('feat_0', 'feat_1')


def test_write_submission_name_and_overwrite(tmp_path):
    out_dir = tmp_path / 'output'
    predictions = pd.DataFrame({'test_id': [3, 1, 2], 'predictions': [0.1, 0.5, 0.9]})

    path = write_submission(predictions, out_dir, date=date(2018, 2, 4))
    assert path == out_dir / 'submission20180204.csv'
    pd.testing.assert_frame_equal(pd.read_csv(path), predictions)

    shorter = predictions.head(2)
    assert write_submission(shorter, out_dir, date=date(2018, 2, 4)) == path
    assert len(pd.read_csv(path)) == 2
    assert len(list(out_dir.glob('*.csv'))) == 1


def test_write_submission_failure_propagates(tmp_path):
    blocker = tmp_path / 'not_a_dir'
    blocker.write_text('')
    predictions = pd.DataFrame({'test_id': [1], 'predictions': [0.5]})
    with pytest.raises(OSError):
        write_submission(predictions, blocker, date=date(2018, 2, 4))
