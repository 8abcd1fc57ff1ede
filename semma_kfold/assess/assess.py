from dataclasses import dataclass

import numpy as np, pandas as pd
from sklearn.metrics import roc_auc_score, f1_score, confusion_matrix

from semma_kfold.config import CUTOFF, LIFT_BINS, CUT_STEP


@dataclass
class Assessment:
    roc: pd.DataFrame
    lift: pd.DataFrame
    stats: dict


def _check(y, p):
    y = np.asarray(y).astype(int); p = np.asarray(p, dtype=float)
    if y.shape != p.shape:
        raise ValueError(f"actual and predicted lengths differ: {y.shape} vs {p.shape}")
    if len(y) == 0:
        raise ValueError("Nothing to assess: empty input")
    if np.isnan(p).any():
        raise ValueError(f"{int(np.isnan(p).sum())} missing predicted probabilities")
    return y, p


def _rates(tp, fp, fn, tn):
    pos, neg, n = tp + fn, fp + tn, tp + fp + fn + tn
    sens = tp / pos if pos else np.nan
    spc = tn / neg if neg else np.nan
    prec = tp / (tp + fp) if (tp + fp) else 0.0
    f1 = 2 * prec * sens / (prec + sens) if pos and (prec + sens) > 0 else 0.0
    acc = (tp + tn) / n
    return sens, spc, acc, f1


def roc_table(y, p, cut_step=CUT_STEP):
    y, p = _check(y, p)
    cutoffs = np.round(np.arange(0, 1 + cut_step / 2, cut_step), 10)
    rows = []
    for t in cutoffs:
        yhat = (p >= t).astype(int)
        tn, fp, fn, tp = confusion_matrix(y, yhat, labels=[0, 1]).ravel()
        sens, spc, acc, f1 = _rates(tp, fp, fn, tn)
        rows.append({"cutoff": float(t), "tp": int(tp), "fp": int(fp), "fn": int(fn), "tn": int(tn),
                     "sensitivity": sens, "specificity": spc, "fpr": 1 - spc, "accuracy": acc,
                     "misc": 1 - acc, "f1": f1, "ks": sens - (1 - spc)})
    return pd.DataFrame(rows)


def lift_table(y, p, n_bins=LIFT_BINS):
    y, p = _check(y, p)
    if n_bins < 1:
        raise ValueError(f"n_bins must be >= 1, got {n_bins}")
    order = np.argsort(-p, kind="mergesort")
    ys = y[order]; total = len(ys); events = ys.sum(); base = events / total
    rows = []; cum_n = cum_e = 0
    for b, chunk in enumerate(np.array_split(ys, min(n_bins, total)), start=1):
        n = len(chunk); e = int(chunk.sum()); cum_n += n; cum_e += e
        resp = e / n; cum_resp = cum_e / cum_n
        rows.append({"bin": b, "depth": round(100 * cum_n / total, 2), "n": n, "events": e,
                     "resp": resp, "cum_resp": cum_resp,
                     "pct_resp": e / events if events else np.nan,
                     "cum_pct_resp": cum_e / events if events else np.nan,
                     "lift": resp / base if base else np.nan,
                     "cum_lift": cum_resp / base if base else np.nan})
    return pd.DataFrame(rows)


def fit_stats(y, p, cutoff=CUTOFF):
    y, p = _check(y, p)
    tn, fp, fn, tp = confusion_matrix(y, (p >= cutoff).astype(int), labels=[0, 1]).ravel()
    sens, spc, acc, _ = _rates(tp, fp, fn, tn)
    two_class = len(np.unique(y)) == 2
    if two_class:
        auc = float(roc_auc_score(y, p))
        # KS over every distinct score, not only the cutoff grid
        order = np.argsort(-p, kind="mergesort"); ps, ys = p[order], y[order]
        last = np.r_[np.diff(ps) != 0, True]
        tpr = np.cumsum(ys)[last] / ys.sum(); fpr = np.cumsum(1 - ys)[last] / (1 - ys).sum()
        i = int(np.argmax(tpr - fpr)); ks = float(tpr[i] - fpr[i]); ks_cut = float(ps[last][i])
    else:
        print(f"WARNING: only one class present (n={len(y)}); AUC, Gini and KS are undefined")
        auc = ks = ks_cut = np.nan
    return {"n": int(len(y)), "events": int(y.sum()), "ks": ks, "ks_cutoff": ks_cut, "auc": auc,
            "gini": 2 * auc - 1 if two_class else np.nan, "accuracy": float(acc), "misc": float(1 - acc),
            "f1": float(f1_score(y, (p >= cutoff).astype(int), zero_division=0)),
            "sensitivity": float(sens), "specificity": float(spc), "cutoff": float(cutoff)}


def assess(y, p, cutoff=CUTOFF, n_bins=LIFT_BINS, cut_step=CUT_STEP):
    return Assessment(roc=roc_table(y, p, cut_step), lift=lift_table(y, p, n_bins), stats=fit_stats(y, p, cutoff))
