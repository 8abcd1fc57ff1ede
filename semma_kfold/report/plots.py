import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np


def corr_heatmap(corr, title="Pearson Correlation"):
    fig, ax = plt.subplots(figsize=(7, 6))
    im = ax.imshow(corr.values, vmin=-1, vmax=1, cmap="PuOr")
    ax.set_xticks(range(len(corr.columns))); ax.set_xticklabels(corr.columns, rotation=90, fontsize=8)
    ax.set_yticks(range(len(corr.index))); ax.set_yticklabels(corr.index, fontsize=8)
    ax.set_title(title); fig.colorbar(im, ax=ax); fig.tight_layout()
    return fig


def missingness_bar(miss, title="Missingness"):
    fig, ax = plt.subplots(figsize=(7, 4))
    miss.plot(kind="bar", ax=ax, color="#3B5BA5"); ax.set_ylabel("fraction missing")
    ax.set_title(title); fig.tight_layout()
    return fig


def class_balance(before, after, target):
    fig, ax = plt.subplots(figsize=(6, 4))
    levels = sorted(set(before.index) | set(after.index)); x = np.arange(len(levels)); w = 0.38
    ax.bar(x - w / 2, [before.get(l, 0) for l in levels], w, label="original", color="#3B5BA5")
    ax.bar(x + w / 2, [after.get(l, 0) for l in levels], w, label="oversampled", color="#E45756")
    ax.set_xticks(x); ax.set_xticklabels([str(l) for l in levels])
    ax.set_xlabel(target); ax.set_ylabel("count"); ax.set_title("Class balance"); ax.legend()
    fig.tight_layout()
    return fig


def roc_curves(roc, title="ROC", by="fold"):
    fig, ax = plt.subplots(figsize=(6, 5))
    groups = roc.groupby(by) if by in roc.columns else [(None, roc)]
    for key, g in groups:
        g = g.sort_values("fpr")
        ax.plot(g["fpr"], g["sensitivity"], label=f"{by} {key}" if key is not None else "model")
    ax.plot([0, 1], [0, 1], "--", color="#6B7280", lw=1)
    ax.set_xlabel("False positive rate"); ax.set_ylabel("Sensitivity"); ax.set_title(title); ax.legend(fontsize=8)
    fig.tight_layout()
    return fig


def lift_curves(lift, col="cum_lift", title="Cumulative lift", by="fold"):
    fig, ax = plt.subplots(figsize=(6, 5))
    groups = lift.groupby(by) if by in lift.columns else [(None, lift)]
    for key, g in groups:
        ax.plot(g["depth"], g[col], marker="o", ms=3, label=f"{by} {key}" if key is not None else "model")
    ax.axhline(1.0, ls="--", color="#6B7280", lw=1)
    ax.set_xlabel("Depth (%)"); ax.set_ylabel(col.replace("_", " ")); ax.set_title(title); ax.legend(fontsize=8)
    fig.tight_layout()
    return fig


def fold_stats_bars(fitstats, cols=("auc", "gini", "ks", "f1", "accuracy", "misc")):
    cols = [c for c in cols if c in fitstats.columns]
    fig, ax = plt.subplots(figsize=(8, 4))
    k = len(fitstats); x = np.arange(len(cols)); w = 0.8 / max(1, k)
    for i, (_, row) in enumerate(fitstats.iterrows()):
        ax.bar(x + (i - (k - 1) / 2) * w, [row[c] for c in cols], w, label=f"fold {int(row['fold'])}")
    ax.set_xticks(x); ax.set_xticklabels(cols); ax.set_ylim(min(0.0, float(np.nanmin(fitstats[cols].values)) - 0.05), 1.05)
    ax.set_title("Fit statistics by fold"); ax.legend(fontsize=8, ncol=min(k, 5)); fig.tight_layout()
    return fig
