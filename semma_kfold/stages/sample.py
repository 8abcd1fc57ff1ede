import os, re
import numpy as np, pandas as pd
from sklearn.model_selection import train_test_split
from imblearn.over_sampling import RandomOverSampler, SMOTE, SMOTENC

from semma_kfold.config import SEED, TARGET, PART_COL, PART_CODES, PART_FRACS


def normalize_col(c: str) -> str:
    c = str(c).strip()
    c = re.sub(r"\s+", "_", c).replace("-", "_")
    return re.sub(r"[^0-9a-zA-Z_]", "", c).strip("_")


def read_csv_forgiving(src):
    """Try common CSV read variants to survive odd delimiters/encodings."""
    try:
        return pd.read_csv(src)
    except (pd.errors.ParserError, UnicodeDecodeError):
        try:
            return pd.read_csv(src, engine="python", encoding="latin-1")
        except pd.errors.ParserError:
            return pd.read_csv(src, sep=";", engine="python", encoding="latin-1")


def make_demo_data(n=2000, seed=SEED):
    # home-equity style loan table, ~20% defaults
    rng = np.random.default_rng(seed)
    loan = np.round(np.exp(rng.normal(9.7, 0.5, n)), -2)
    value = np.round(loan * rng.uniform(2.0, 6.0, n), 0)
    mortdue = np.round(value * rng.uniform(0.2, 0.9, n), 0)
    reason = rng.choice(["DebtCon", "HomeImp"], n, p=[0.68, 0.32]).astype(object)
    job = rng.choice(["Other", "ProfExe", "Office", "Mgr", "Self", "Sales"], n,
                     p=[0.42, 0.22, 0.16, 0.13, 0.04, 0.03]).astype(object)
    yoj = rng.gamma(2.0, 4.5, n).round(1)
    derog = rng.poisson(0.25, n); delinq = rng.poisson(0.45, n)
    clage = rng.normal(180, 85, n).clip(0, 700).round(1)
    ninq = rng.poisson(1.1, n); clno = rng.poisson(21, n)
    debtinc = rng.normal(34, 8.5, n).clip(1, 80).round(2)
    logit = (-2.2 + 0.75 * derog + 0.85 * delinq + 0.18 * ninq - 0.006 * (clage - 180)
             + 0.06 * (debtinc - 34) - 0.02 * (yoj - 9) + 0.35 * (job == "Sales") + 0.25 * (job == "Self"))
    bad = rng.binomial(1, 1 / (1 + np.exp(-logit)))
    df = pd.DataFrame({"BAD": bad, "LOAN": loan, "MORTDUE": mortdue, "VALUE": value, "REASON": reason,
                       "JOB": job, "YOJ": yoj, "DEROG": derog, "DELINQ": delinq, "CLAGE": clage,
                       "NINQ": ninq, "CLNO": clno, "DEBTINC": debtinc})
    for c, rate in [("MORTDUE", 0.08), ("VALUE", 0.02), ("REASON", 0.04), ("JOB", 0.05),
                    ("YOJ", 0.08), ("CLAGE", 0.05), ("DEBTINC", 0.2)]:
        df.loc[rng.random(n) < rate, c] = np.nan
    return df


def load_data(path=None, seed=SEED):
    if path is not None and not os.path.exists(path):
        raise FileNotFoundError(f"Data file not found: {path}")
    if path is None:
        return make_demo_data(seed=seed), True
    df = read_csv_forgiving(path)
    df.columns = [normalize_col(c) for c in df.columns]
    return df, False


def encode_target(df, target=TARGET, event=None):
    """Map the target to 1 (event) / 0 (non-event)."""
    if target not in df.columns:
        raise KeyError(f"Target column '{target}' not found. Columns: {list(df.columns)}")
    y = df[target]
    if y.isna().any():
        raise ValueError(f"Target '{target}' has {int(y.isna().sum())} missing values")
    levels = pd.unique(y)
    if len(levels) != 2:
        raise ValueError(f"Target '{target}' must be binary, found levels {sorted(map(str, levels))}")
    if pd.api.types.is_numeric_dtype(y):
        as_str = y.map(lambda v: str(int(v)) if float(v).is_integer() else str(v))
    else:
        as_str = y.astype(str).str.strip()
    if event is None:
        if "1" in set(as_str):
            event = "1"
        else:
            event = as_str.value_counts().idxmin()
    event = str(event).strip()
    if event not in set(as_str):
        raise ValueError(f"Event level {event!r} not present in target '{target}'")
    out = df.copy()
    out[target] = (as_str == event).astype(int)
    return out


def oversample(df, target=TARGET, ratio=1.0, method="random", seed=SEED):
    if not 0 < ratio <= 1:
        raise ValueError(f"ratio must be in (0, 1], got {ratio}")
    y = df[target]
    counts = y.value_counts()
    if len(counts) != 2:
        raise ValueError(f"Cannot oversample: target '{target}' has {len(counts)} class(es)")
    if counts.min() / counts.max() >= ratio:
        return df.reset_index(drop=True)
    X = df.drop(columns=[target])
    if method == "random":
        sampler = RandomOverSampler(sampling_strategy=ratio, random_state=seed)
    elif method == "smote":
        if X.isna().any().any():
            raise ValueError("SMOTE needs complete data; impute first or use method='random'")
        cat = [i for i, c in enumerate(X.columns) if not pd.api.types.is_numeric_dtype(X[c])]
        sampler = (SMOTENC(categorical_features=cat, sampling_strategy=ratio, random_state=seed) if cat
                   else SMOTE(sampling_strategy=ratio, random_state=seed))
    else:
        raise ValueError(f"Unknown oversampling method {method!r} (use 'random' or 'smote')")
    Xr, yr = sampler.fit_resample(X, y)
    out = pd.DataFrame(Xr, columns=X.columns).reset_index(drop=True)
    out.insert(df.columns.get_loc(target), target, np.asarray(yr))
    return out


def partition(df, target=TARGET, fractions=PART_FRACS, seed=SEED):
    """Stratified train/validate/test split recorded in the _PartInd_ column."""
    f_tr, f_va, f_te = fractions
    if min(fractions) <= 0 or not np.isclose(sum(fractions), 1.0):
        raise ValueError(f"Partition fractions must be positive and sum to 1, got {fractions}")
    idx = np.arange(len(df)); y = df[target].values
    idx_tv, idx_te = train_test_split(idx, test_size=f_te, stratify=y, random_state=seed)
    idx_tr, idx_va = train_test_split(idx_tv, test_size=f_va / (f_tr + f_va), stratify=y[idx_tv], random_state=seed)
    ind = np.empty(len(df), dtype=int)
    ind[idx_tr] = PART_CODES["train"]; ind[idx_va] = PART_CODES["validate"]; ind[idx_te] = PART_CODES["test"]
    out = df.reset_index(drop=True).copy()
    out[PART_COL] = ind
    return out


def split_partitions(df):
    if PART_COL not in df.columns:
        raise KeyError(f"'{PART_COL}' missing; run partition() first")
    return {name: df[df[PART_COL] == code].drop(columns=[PART_COL]).reset_index(drop=True)
            for name, code in PART_CODES.items()}


def partition_stats(df, target=TARGET):
    rows = []
    for name, part in split_partitions(df).items():
        rows.append({"partition": name, "code": PART_CODES[name], "rows": int(len(part)),
                     "events": int(part[target].sum()), "event_rate": float(part[target].mean())})
    return pd.DataFrame(rows)
