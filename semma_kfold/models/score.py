import numpy as np, pandas as pd

from semma_kfold.config import TARGET, CUTOFF


def adjust_priors(p, sample_rate, true_rate):
    """Correct event probabilities from an oversampled fit back to the population prior."""
    for name, r in (("sample_rate", sample_rate), ("true_rate", true_rate)):
        if not 0 < r < 1:
            raise ValueError(f"{name} must be in (0, 1), got {r}")
    p = np.asarray(p, dtype=float)
    num = p * true_rate / sample_rate
    return num / (num + (1 - p) * (1 - true_rate) / (1 - sample_rate))


def predict_event(model, df):
    cols = getattr(model, "inputs_", None)
    X = df[cols] if cols is not None else df
    return model.predict_proba(X)[:, 1]


def score(model, df, target=TARGET, event_prob=None, cutoff=CUTOFF):
    """Append P_<target>1, P_<target>0 and I_<target> to a copy of df."""
    p1 = predict_event(model, df)
    if event_prob is not None:
        p1 = adjust_priors(p1, *event_prob)
    out = df.copy()
    out[f"P_{target}1"] = p1
    out[f"P_{target}0"] = 1 - p1
    out[f"I_{target}"] = (p1 >= cutoff).astype(int)
    return out
