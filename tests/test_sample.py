import numpy as np
import pandas as pd
import pytest

from semma_kfold.config import PART_COL
from semma_kfold.stages.sample import (normalize_col, load_data, encode_target, oversample, partition,
                                       split_partitions, partition_stats)


def test_normalize_col():
    assert normalize_col(" Debt-To Income% ") == "Debt_To_Income"
    assert normalize_col("BAD") == "BAD"


def test_load_data_demo_and_csv(tmp_path):
    df, demo = load_data(None, seed=1)
    assert demo and "BAD" in df.columns and len(df) == 2000
    assert 0.05 < df["BAD"].mean() < 0.4
    path = tmp_path / "loans.csv"
    path.write_text("Loan Amount,BAD\n100,0\n200,1\n")
    df, demo = load_data(str(path))
    assert not demo
    assert list(df.columns) == ["Loan_Amount", "BAD"]


def test_load_data_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_data(str(tmp_path / "nope.csv"))


def test_encode_target_levels():
    df = pd.DataFrame({"y": ["good", "bad", "good", "good"], "x": [1, 2, 3, 4]})
    assert encode_target(df, "y")["y"].tolist() == [0, 1, 0, 0]
    assert encode_target(df, "y", event="good")["y"].tolist() == [1, 0, 1, 1]
    with pytest.raises(KeyError):
        encode_target(df, "target")
    with pytest.raises(ValueError):
        encode_target(df.assign(y=["a", "b", "c", "a"]), "y")
    with pytest.raises(ValueError):
        encode_target(df, "y", event="ugly")


def test_oversample_balances_without_touching_originals(demo_df):
    out = oversample(demo_df, "BAD", ratio=1.0, seed=3)
    counts = out["BAD"].value_counts()
    assert counts[0] == counts[1] == (demo_df["BAD"] == 0).sum()
    pd.testing.assert_frame_equal(out.iloc[:len(demo_df)].reset_index(drop=True),
                                  demo_df.reset_index(drop=True), check_dtype=False)
    assert list(out.columns) == list(demo_df.columns)


def test_oversample_partial_ratio(demo_df):
    out = oversample(demo_df, "BAD", ratio=0.5, seed=3)
    counts = out["BAD"].value_counts()
    assert abs(counts[1] - 0.5 * counts[0]) <= 1


def test_oversample_errors(demo_df):
    with pytest.raises(ValueError):
        oversample(demo_df, "BAD", ratio=0)
    with pytest.raises(ValueError):
        oversample(demo_df, "BAD", method="undersample")
    with pytest.raises(ValueError):
        oversample(demo_df, "BAD", method="smote")  # demo data has missing values


def test_oversample_smote_complete_numeric(demo_df):
    df = demo_df[["BAD", "LOAN", "VALUE", "DEROG", "DELINQ", "NINQ", "CLNO"]].dropna().reset_index(drop=True)
    out = oversample(df, "BAD", method="smote", seed=0)
    assert out["BAD"].value_counts().nunique() == 1
    assert not out.isna().any().any()


def test_partition_disjoint_stratified(demo_df):
    part = partition(demo_df, "BAD", (0.6, 0.2, 0.2), seed=11)
    assert set(part[PART_COL].unique()) == {0, 1, 2}
    assert len(part) == len(demo_df)
    shares = part[PART_COL].value_counts(normalize=True)
    assert shares[1] == pytest.approx(0.6, abs=0.01)
    assert shares[0] == pytest.approx(0.2, abs=0.01)
    rate = demo_df["BAD"].mean()
    for name, p in split_partitions(part).items():
        assert p["BAD"].mean() == pytest.approx(rate, abs=0.02), name
        assert PART_COL not in p.columns
    stats = partition_stats(part, "BAD")
    assert stats["rows"].sum() == len(demo_df)
    assert stats["events"].sum() == demo_df["BAD"].sum()


def test_partition_bad_fractions(demo_df):
    with pytest.raises(ValueError):
        partition(demo_df, "BAD", (0.7, 0.2, 0.2))
    with pytest.raises(ValueError):
        partition(demo_df, "BAD", (1.0, 0.0, 0.0))


def test_split_partitions_requires_indicator(demo_df):
    with pytest.raises(KeyError):
        split_partitions(demo_df)


def test_partition_reproducible(demo_df):
    a = partition(demo_df, "BAD", seed=5)[PART_COL].values
    b = partition(demo_df, "BAD", seed=5)[PART_COL].values
    assert np.array_equal(a, b)
