import numpy as np, pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.pipeline import Pipeline
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import OneHotEncoder, StandardScaler, FunctionTransformer
from sklearn.impute import SimpleImputer

from semma_kfold.config import RARE_MIN_COUNT, RARE_MIN_PROP

LEVEL_SEP = "="


def effect_of(col):
    """Design column -> source variable ("JOB=Sales" -> "JOB")."""
    return str(col).split(LEVEL_SEP, 1)[0]


def _level_name(feature, category):
    return f"{feature}{LEVEL_SEP}{category}"


def _as_text(X):
    # nominal inputs may be numeric codes; keep NaN so the imputer sees it
    X = pd.DataFrame(X).copy()
    for c in X.columns:
        X[c] = X[c].map(lambda v: np.nan if pd.isna(v) else str(v)).astype(object)
    return X


class RareCategoryGrouper(BaseEstimator, TransformerMixin):
    def __init__(self, cols, min_count=RARE_MIN_COUNT, min_prop=RARE_MIN_PROP):
        self.cols=cols; self.min_count=min_count; self.min_prop=min_prop
    def fit(self, X, y=None):
        self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        n = len(X); thr = max(self.min_count, int(np.ceil(self.min_prop*n)))
        self.keep_maps_ = {}
        for c in self.cols:
            vc = X[c].dropna().astype(str).value_counts()
            self.keep_maps_[c] = set(vc[vc >= thr].index.tolist())
        return self
    def transform(self, X):
        X = X.copy()
        for c in self.cols:
            keep = self.keep_maps_.get(c, set())
            s = X[c].astype(object)
            X[c] = s.where(s.isna() | s.astype(str).isin(keep), "RARE")
        return X
    def get_feature_names_out(self, input_features=None):
        return self.feature_names_in_ if input_features is None else np.asarray(input_features, dtype=object)


def build_preprocessor(interval, nominal):
    interval, nominal = list(interval), list(nominal)
    steps = []
    if nominal:
        steps.append(("rare", RareCategoryGrouper(cols=nominal)))
    transformers = []
    if interval:
        transformers.append(("num", Pipeline([("imp", SimpleImputer(strategy="median")),
                                              ("scaler", StandardScaler())]), interval))
    if nominal:
        transformers.append(("cat", Pipeline([
            ("text", FunctionTransformer(_as_text, feature_names_out="one-to-one")),
            ("imp", SimpleImputer(strategy="most_frequent")),
            ("ohe", OneHotEncoder(drop="first", handle_unknown="ignore", sparse_output=False,
                                  feature_name_combiner=_level_name))]), nominal))
    if not transformers:
        raise ValueError("No input columns to model")
    steps.append(("ct", ColumnTransformer(transformers, remainder="drop",
                                          verbose_feature_names_out=False, sparse_threshold=0.0)))
    prep = Pipeline(steps)
    prep.set_output(transform="pandas")
    return prep
