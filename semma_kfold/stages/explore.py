import os, re
import numpy as np, pandas as pd
from scipy import stats

from semma_kfold.config import TARGET, MAX_LEVELS, PART_COL


def id_like_columns(df, target=TARGET):
    n = len(df); out = []
    for c in df.columns:
        if c in (target, PART_COL):
            continue
        numeric = pd.api.types.is_numeric_dtype(df[c])
        if re.search(r"(^|_)id$", c, flags=re.I) or (not numeric and n and df[c].nunique(dropna=True) / n > 0.95):
            out.append(c)
    return out


def classify_columns(df, target=TARGET, max_levels=MAX_LEVELS, exclude=()):
    """Split inputs into interval (numeric, many levels) and nominal columns."""
    skip = set(exclude) | set(id_like_columns(df, target)) | {target, PART_COL}
    interval, nominal = [], []
    for c in df.columns:
        if c in skip:
            continue
        if pd.api.types.is_numeric_dtype(df[c]) and df[c].nunique(dropna=True) > max_levels:
            interval.append(c)
        else:
            nominal.append(c)
    return interval, nominal


def cardinality(df):
    rows = []
    for c in df.columns:
        s = df[c]; numeric = pd.api.types.is_numeric_dtype(s)
        mode = s.mode(dropna=True)
        rows.append({"column": c, "type": "numeric" if numeric else "character",
                     "levels": int(s.nunique(dropna=True)), "missing": int(s.isna().sum()),
                     "pct_missing": round(100 * float(s.isna().mean()), 2) if len(s) else 0.0,
                     "mean": float(s.mean()) if numeric else np.nan,
                     "std": float(s.std()) if numeric else np.nan,
                     "min": float(s.min()) if numeric else np.nan,
                     "max": float(s.max()) if numeric else np.nan,
                     "mode": str(mode.iloc[0]) if len(mode) else ""})
    return pd.DataFrame(rows)


def correlation(df, cols, method="pearson"):
    return df[list(cols)].corr(method=method)


def cramers_v(x, y):
    ct = pd.crosstab(x, y); r, k = ct.shape
    if r < 2 or k < 2:
        return np.nan
    chi2 = stats.chi2_contingency(ct)[0]; n = ct.values.sum(); phi2 = chi2 / n
    phi2corr = max(0, phi2 - (k-1)*(r-1)/(n-1)); rcorr = r - (r-1)**2/(n-1); kcorr = k - (k-1)**2/(n-1)
    return float(np.sqrt(phi2corr / max(1e-9, min((kcorr-1), (rcorr-1)))))


def nominal_association(df, nominal, target=TARGET):
    rows = [{"feature": c, "levels": int(df[c].nunique(dropna=True)),
             "cramers_v": cramers_v(df[c].astype(str), df[target])} for c in nominal]
    out = pd.DataFrame(rows, columns=["feature", "levels", "cramers_v"])
    return out.sort_values("cramers_v", ascending=False).reset_index(drop=True)


def missingness(df):
    return df.isna().mean().sort_values(ascending=False).rename("pct_missing")


def target_profile(df, target=TARGET):
    vc = df[target].value_counts().sort_index()
    return pd.DataFrame({"level": vc.index, "count": vc.values, "percent": (100 * vc / vc.sum()).values.round(2)})


def explore(df, target=TARGET, outdir=None, max_levels=MAX_LEVELS, exclude=()):
    interval, nominal = classify_columns(df, target, max_levels, exclude)
    tables = {"cardinality": cardinality(df),
              "target": target_profile(df, target),
              "missingness": missingness(df).reset_index().rename(columns={"index": "column"}),
              "correlation": correlation(df, interval + [target]),
              "association": nominal_association(df, nominal, target)}
    if outdir:
        os.makedirs(outdir, exist_ok=True)
        for name, t in tables.items():
            path = os.path.join(outdir, f"explore_{name}.csv")
            t.to_csv(path, index=(name == "correlation"))
            print(f"[SAVE] {name} -> {path}")
    return tables, interval, nominal
