"""k-fold assessment of an already-fitted model on a held-out table.

The table is split into k stratified folds. Each fold is scored with the
fitted model (nothing is refit), the scored folds are stacked, and every fold
is assessed separately so the spread of ROC, lift and fit statistics across
folds shows how well the model generalizes.
"""
import os
from dataclasses import dataclass

import numpy as np, pandas as pd
from sklearn.model_selection import StratifiedKFold

from semma_kfold.config import SEED, TARGET, FOLD_COL, K_FOLDS, CUTOFF, LIFT_BINS, CUT_STEP
from semma_kfold.assess.assess import assess
from semma_kfold.models.score import predict_event

STAT_COLS = ["ks", "auc", "gini", "f1", "accuracy", "misc"]


@dataclass
class KFoldResult:
    k: int
    scored: pd.DataFrame
    roc: pd.DataFrame
    lift: pd.DataFrame
    fitstats: pd.DataFrame
    summary: pd.DataFrame

    def save(self, outdir, prefix="kfold"):
        os.makedirs(outdir, exist_ok=True)
        paths = {}
        for name in ("scored", "roc", "lift", "fitstats", "summary"):
            path = os.path.join(outdir, f"{prefix}_{name}.csv")
            getattr(self, name).to_csv(path, index=(name == "summary"))
            print(f"[SAVE] k-fold {name} -> {path}")
            paths[name] = path
        return paths


def check_k(y, k):
    if not isinstance(k, (int, np.integer)) or k < 2:
        raise ValueError(f"k must be an integer >= 2, got {k!r}")
    counts = pd.Series(y).value_counts()
    if len(counts) < 2:
        raise ValueError("k-fold assessment needs both target classes in the table")
    if k > counts.min():
        raise ValueError(f"k={k} exceeds the rarest class count ({int(counts.min())}); lower k")


def assign_folds(df, target=TARGET, k=K_FOLDS, seed=SEED):
    """Fold id (1..k) per row, stratified on the target."""
    y = df[target].values
    check_k(y, k)
    folds = np.zeros(len(df), dtype=int)
    skf = StratifiedKFold(n_splits=k, shuffle=True, random_state=seed)
    for i, (_, idx) in enumerate(skf.split(np.zeros(len(y)), y), start=1):
        folds[idx] = i
    return folds


def summarize(fitstats, cols=STAT_COLS):
    return fitstats[cols].agg(["mean", "std", "min", "max"]).T.rename_axis("statistic")


def k_fold_cv(df, model=None, target=TARGET, k=K_FOLDS, seed=SEED, cutoff=CUTOFF,
              n_bins=LIFT_BINS, cut_step=CUT_STEP, scorer=None):
    if (model is None) == (scorer is None):
        raise ValueError("Pass exactly one of model= or scorer=")
    if target not in df.columns:
        raise KeyError(f"Target column '{target}' not found")
    score_fn = scorer if scorer is not None else (lambda part: predict_event(model, part))
    data = df.reset_index(drop=True).copy()
    data[FOLD_COL] = assign_folds(data, target, k, seed)
    prob = f"P_{target}1"

    scored, rocs, lifts, stats = [], [], [], []
    for fold in range(1, k + 1):
        part = data[data[FOLD_COL] == fold].copy()
        part[prob] = np.asarray(score_fn(part.drop(columns=[FOLD_COL])), dtype=float)
        part[f"P_{target}0"] = 1 - part[prob]
        part[f"I_{target}"] = (part[prob] >= cutoff).astype(int)
        scored.append(part)
        a = assess(part[target].values, part[prob].values, cutoff, n_bins, cut_step)
        rocs.append(a.roc.assign(fold=fold)); lifts.append(a.lift.assign(fold=fold))
        stats.append({"fold": fold, **a.stats})
        print(f"  fold {fold}/{k}: n={a.stats['n']}, AUC={a.stats['auc']:.4f}, KS={a.stats['ks']:.4f}, "
              f"ACC={a.stats['accuracy']:.4f}")

    fitstats = pd.DataFrame(stats)
    return KFoldResult(k=k, scored=pd.concat(scored, ignore_index=True),
                       roc=pd.concat(rocs, ignore_index=True), lift=pd.concat(lifts, ignore_index=True),
                       fitstats=fitstats, summary=summarize(fitstats))
