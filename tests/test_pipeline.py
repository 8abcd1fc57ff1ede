import numpy as np
import pandas as pd
import pytest

from semma_kfold.features.pipeline import RareCategoryGrouper, build_preprocessor, effect_of


def test_effect_of():
    assert effect_of("JOB=Sales") == "JOB"
    assert effect_of("LOAN") == "LOAN"
    assert effect_of("DEROG=1.0") == "DEROG"


def test_rare_category_grouper_keeps_missing():
    df = pd.DataFrame({"c": ["a"] * 20 + ["b"] * 20 + ["z"] * 2 + [np.nan] * 3})
    out = RareCategoryGrouper(cols=["c"], min_count=8, min_prop=0.01).fit(df).transform(df)
    assert set(out["c"].dropna()) == {"a", "b", "RARE"}
    assert out["c"].isna().sum() == 3


def test_build_preprocessor_design_columns(demo_df):
    interval = ["LOAN", "DEBTINC", "CLAGE"]; nominal = ["JOB", "REASON"]
    prep = build_preprocessor(interval, nominal)
    X = prep.fit_transform(demo_df[interval + nominal])
    assert isinstance(X, pd.DataFrame)
    assert not X.isna().any().any()
    assert len(X) == len(demo_df)
    assert set(interval) <= set(X.columns)
    job_cols = [c for c in X.columns if effect_of(c) == "JOB"]
    assert len(job_cols) == demo_df["JOB"].nunique() - 1  # reference level dropped
    assert all(c.startswith("JOB=") for c in job_cols)
    assert X["LOAN"].mean() == pytest.approx(0, abs=1e-8)


def test_preprocessor_handles_unseen_level(demo_df):
    prep = build_preprocessor(["LOAN"], ["JOB"])
    prep.fit(demo_df[["LOAN", "JOB"]])
    new = pd.DataFrame({"LOAN": [10000.0, np.nan], "JOB": ["Astronaut", None]})
    X = prep.transform(new)
    assert X.shape[0] == 2 and not X.isna().any().any()


def test_numeric_nominal_levels(demo_df):
    prep = build_preprocessor([], ["DELINQ"])
    X = prep.fit_transform(demo_df[["DELINQ"]])
    assert all(effect_of(c) == "DELINQ" for c in X.columns)


def test_build_preprocessor_needs_inputs():
    with pytest.raises(ValueError):
        build_preprocessor([], [])
