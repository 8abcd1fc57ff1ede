import numpy as np
import pytest
from sklearn.metrics import roc_auc_score, roc_curve, accuracy_score, f1_score

from semma_kfold.assess.assess import roc_table, lift_table, fit_stats, assess
from semma_kfold.models.score import adjust_priors


@pytest.fixture
def yp():
    rng = np.random.default_rng(4)
    y = rng.binomial(1, 0.3, 800)
    p = 1 / (1 + np.exp(-(rng.normal(size=800) + 1.2 * y - 0.8)))
    return y, p


def test_perfect_ranking():
    s = fit_stats([0, 0, 1, 1], [0.1, 0.2, 0.8, 0.9])
    assert s["auc"] == 1 and s["gini"] == 1 and s["ks"] == 1
    assert s["accuracy"] == 1 and s["misc"] == 0 and s["f1"] == 1


def test_fit_stats_match_sklearn(yp):
    y, p = yp
    s = fit_stats(y, p, cutoff=0.5)
    fpr, tpr, _ = roc_curve(y, p)
    assert s["auc"] == pytest.approx(roc_auc_score(y, p))
    assert s["gini"] == pytest.approx(2 * s["auc"] - 1)
    assert s["ks"] == pytest.approx(np.max(tpr - fpr))
    assert s["accuracy"] == pytest.approx(accuracy_score(y, p >= 0.5))
    assert s["misc"] == pytest.approx(1 - s["accuracy"])
    assert s["f1"] == pytest.approx(f1_score(y, p >= 0.5))
    assert 0 <= s["ks"] <= 1 and s["n"] == len(y) and s["events"] == y.sum()


def test_roc_table_endpoints(yp):
    y, p = yp
    roc = roc_table(y, p, cut_step=0.01)
    assert len(roc) == 101
    first, last = roc.iloc[0], roc.iloc[-1]
    assert first["cutoff"] == 0 and first["sensitivity"] == 1 and first["fpr"] == 1
    assert last["cutoff"] == 1 and last["sensitivity"] == 0 and last["fpr"] == 0
    assert (roc[["tp", "fp", "fn", "tn"]].sum(axis=1) == len(y)).all()
    assert roc["sensitivity"].is_monotonic_decreasing
    assert np.allclose(roc["misc"], 1 - roc["accuracy"])


def test_lift_table(yp):
    y, p = yp
    lift = lift_table(y, p, n_bins=20)
    assert len(lift) == 20 and lift["n"].sum() == len(y)
    last = lift.iloc[-1]
    assert last["depth"] == 100
    assert last["cum_lift"] == pytest.approx(1)
    assert last["cum_pct_resp"] == pytest.approx(1)
    assert lift["events"].sum() == y.sum()
    assert lift.iloc[0]["lift"] > 1  # a useful score front-loads events
    assert lift["cum_pct_resp"].is_monotonic_increasing


def test_single_class_fold(capsys):
    s = fit_stats([0, 0, 0], [0.2, 0.7, 0.1])
    assert np.isnan(s["auc"]) and np.isnan(s["gini"]) and np.isnan(s["ks"])
    assert s["accuracy"] == pytest.approx(2 / 3)
    assert "only one class" in capsys.readouterr().out


def test_assess_bundle(yp):
    y, p = yp
    a = assess(y, p, cutoff=0.4, n_bins=10, cut_step=0.05)
    assert len(a.roc) == 21 and len(a.lift) == 10 and a.stats["cutoff"] == 0.4


def test_bad_inputs():
    with pytest.raises(ValueError):
        fit_stats([0, 1], [0.5])
    with pytest.raises(ValueError):
        roc_table([], [])
    with pytest.raises(ValueError):
        lift_table([0, 1], [0.2, np.nan])


def test_adjust_priors():
    p = np.array([0.5, 0.2, 0.9])
    adj = adjust_priors(p, sample_rate=0.5, true_rate=0.1)
    assert adj[0] == pytest.approx(0.1)
    assert np.all(adj < p)
    assert np.allclose(adjust_priors(p, 0.3, 0.3), p)
    with pytest.raises(ValueError):
        adjust_priors(p, 0, 0.1)
