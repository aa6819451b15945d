import logging
from typing import List, NamedTuple

import numpy as np
import pandas as pd
import xgboost as xgb

logger = logging.getLogger('xgb_solution.prepare_inputs')

ID_COLUMN = 'id'
LABEL_COLUMN = 'is_female'


class SolutionMatrices(NamedTuple):
    dtrain: xgb.DMatrix
    dvalid: xgb.DMatrix
    dtest: xgb.DMatrix
    feature_names: List[str]
    test_ids: np.ndarray


def feature_columns(df: pd.DataFrame, id_column: str = ID_COLUMN, label_column: str = LABEL_COLUMN) -> List[str]:
    if id_column not in df.columns:
        raise KeyError(f"Identifier column '{id_column}' missing from dataset")
    return [col for col in df.columns if col not in (id_column, label_column)]


def check_feature_schema(reference: List[str], columns: List[str], name: str) -> None:
    missing = [col for col in reference if col not in columns]
    extra = [col for col in columns if col not in reference]
    if missing or extra:
        raise KeyError(f'Feature mismatch in {name} dataset: missing={missing} extra={extra}')
    if list(columns) != list(reference):
        raise ValueError(f'Feature columns of {name} dataset are not in training order')


def coerce_label(series: pd.Series, name: str = 'train') -> np.ndarray:
    """
    Convert a label column to a numeric 0/1 vector.

    Booleans map to 0/1 and numeric text is parsed, so '0'/'1' labels read
    from a csv are accepted. Anything that does not land in {0, 1} raises.
    """
    if pd.api.types.is_bool_dtype(series):
        values = series.astype(np.int8)
    else:
        try:
            values = pd.to_numeric(series.astype(str).str.strip(), errors='raise')
        except (TypeError, ValueError) as e:
            raise ValueError(f'Label column of {name} dataset is not numeric: {e}') from e

    if values.isna().any():
        raise ValueError(f'Label column of {name} dataset contains missing values')

    bad = ~values.isin([0, 1])
    if bad.any():
        raise ValueError(
            f'Label column of {name} dataset must be 0/1, found {sorted(values[bad].unique().tolist())}')

    return values.to_numpy(dtype=np.float32)


def to_feature_array(df: pd.DataFrame, features: List[str], name: str) -> np.ndarray:
    try:
        return np.ascontiguousarray(df[features].to_numpy(dtype=np.float32))
    except (TypeError, ValueError) as e:
        raise ValueError(f'Non-numeric feature values in {name} dataset: {e}') from e


def prepare_matrices(train: pd.DataFrame, valid: pd.DataFrame, test: pd.DataFrame,
                     id_column: str = ID_COLUMN, label_column: str = LABEL_COLUMN) -> SolutionMatrices:
    """
    Split identifier and label columns from the features and build the
    XGBoost matrices for the train, validation and test datasets.

    The feature schema of train is the reference; valid and test must carry
    the same columns in the same order.
    """
    features = feature_columns(train, id_column, label_column)
    if not features:
        raise KeyError('Training dataset has no feature columns')

    for name, df in (('valid', valid), ('test', test)):
        check_feature_schema(features, feature_columns(df, id_column, label_column), name)

    for name, df in (('train', train), ('valid', valid)):
        if label_column not in df.columns:
            raise KeyError(f"Label column '{label_column}' missing from {name} dataset")
    if label_column in test.columns:
        logger.warning(f"Test dataset carries label column '{label_column}', ignoring it")

    y_train = coerce_label(train[label_column], 'train')
    y_valid = coerce_label(valid[label_column], 'valid')

    dtrain = xgb.DMatrix(to_feature_array(train, features, 'train'), label=y_train,
                         missing=np.nan, feature_names=features)
    dvalid = xgb.DMatrix(to_feature_array(valid, features, 'valid'), label=y_valid,
                         missing=np.nan, feature_names=features)
    dtest = xgb.DMatrix(to_feature_array(test, features, 'test'),
                        missing=np.nan, feature_names=features)

    logger.info(f'Prepared matrices: train={dtrain.num_row()} valid={dvalid.num_row()} '
                f'test={dtest.num_row()} rows, {len(features)} features')

    return SolutionMatrices(dtrain, dvalid, dtest, features, test[id_column].to_numpy())
