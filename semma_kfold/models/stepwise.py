import warnings
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy import stats
from sklearn.base import BaseEstimator, ClassifierMixin
from statsmodels.tools.sm_exceptions import PerfectSeparationError

from semma_kfold.config import SLENTRY, SLSTAY
from semma_kfold.features.pipeline import effect_of

METHODS = ("forward", "backward", "stepwise", "none")
INTERCEPT = "Intercept"


def group_effects(columns: Sequence[str]) -> Dict[str, List[str]]:
    """Group design columns by source variable, keeping first-seen order."""
    effects: Dict[str, List[str]] = {}
    for c in columns:
        effects.setdefault(effect_of(c), []).append(c)
    return effects


def design_matrix(X: pd.DataFrame, cols: Sequence[str]) -> pd.DataFrame:
    design = X[list(cols)].astype(float).copy()
    design.insert(0, INTERCEPT, 1.0)
    return design


def dependent_columns(X: pd.DataFrame, cols: Sequence[str]) -> List[str]:
    """Columns that are linear combinations of the intercept and earlier columns."""
    kept = [np.ones(len(X))]
    dropped = []
    for c in cols:
        trial = np.column_stack(kept + [X[c].to_numpy(dtype=float)])
        if np.linalg.matrix_rank(trial) < trial.shape[1]:
            dropped.append(c)
        else:
            kept.append(trial[:, -1])
    return dropped


def fit_logit(X: pd.DataFrame, y: np.ndarray, cols: Sequence[str]):
    """Fit an intercept + `cols` logit. Newton first, BFGS as fallback."""
    design = design_matrix(X, cols)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            res = sm.Logit(y, design).fit(disp=0, method="newton", maxiter=100)
        except np.linalg.LinAlgError:
            res = sm.Logit(y, design).fit(disp=0, method="bfgs", maxiter=1000)
    return res


def wald_test(res, cols: Sequence[str]) -> Tuple[float, float]:
    b = res.params[list(cols)].values
    cov = res.cov_params().loc[list(cols), list(cols)].values
    chi2 = float(b @ np.linalg.pinv(cov) @ b)
    return chi2, float(stats.chi2.sf(chi2, len(cols)))


def lr_test(full, reduced, df: int) -> Tuple[float, float]:
    chi2 = max(0.0, 2.0 * (full.llf - reduced.llf))
    return chi2, float(stats.chi2.sf(chi2, df))


class StepwiseLogit(BaseEstimator, ClassifierMixin):
    """Logistic regression with SAS-style effect selection.

    Effects enter on the likelihood-ratio chi-square (p < slentry) and leave
    on the joint Wald chi-square (p > slstay). All design columns of one
    nominal variable form a single effect.
    """

    def __init__(self, method="stepwise", slentry=SLENTRY, slstay=SLSTAY, include=(),
                 max_steps=None, verbose=True):
        self.method = method
        self.slentry = slentry
        self.slstay = slstay
        self.include = include
        self.max_steps = max_steps
        self.verbose = verbose

    def _log(self, msg):
        if self.verbose:
            print(msg)

    def _try_fit(self, X, y, effects, selected, effect):
        cols = [c for e in selected for c in effects[e]]
        try:
            return fit_logit(X, y, cols)
        except (np.linalg.LinAlgError, PerfectSeparationError, ValueError) as e:
            self._log(f"  skip {effect}: {type(e).__name__}: {e}")
            return None

    def _enter(self, X, y, effects, selected, current):
        best = None
        for e in effects:
            if e in selected:
                continue
            res = self._try_fit(X, y, effects, selected + [e], e)
            if res is None:
                continue
            chi2, p = lr_test(res, current, len(effects[e]))
            if best is None or p < best[2]:
                best = (e, chi2, p, res)
        return best

    def _remove(self, current, effects, selected, forced):
        worst = None
        for e in selected:
            if e in forced:
                continue
            try:
                chi2, p = wald_test(current, effects[e])
            except (np.linalg.LinAlgError, ValueError) as err:
                self._log(f"  skip {e}: no Wald test ({type(err).__name__}: {err})")
                continue
            if worst is None or p > worst[2]:
                worst = (e, chi2, p)
        return worst

    def fit(self, X, y):
        if self.method not in METHODS:
            raise ValueError(f"method must be one of {METHODS}, got {self.method!r}")
        X = pd.DataFrame(X)
        y = np.asarray(y).astype(int)
        self.classes_ = np.unique(y)
        if len(self.classes_) != 2 or set(self.classes_) != {0, 1}:
            raise ValueError(f"StepwiseLogit needs a 0/1 target, got classes {self.classes_}")
        self.feature_names_in_ = np.asarray(X.columns, dtype=object)
        missing = sorted(set(self.include) - set(group_effects(X.columns)))
        if missing:
            raise ValueError(f"include names unknown effects: {missing}")
        self.dropped_ = dependent_columns(X, X.columns)
        for c in self.dropped_:
            self._log(f"  drop {c}: linearly dependent on the intercept and earlier columns")
        effects = group_effects([c for c in X.columns if c not in self.dropped_])
        forced = [e for e in self.include if e in effects]

        if self.method in ("backward", "none"):
            selected = list(effects)
        else:
            selected = list(forced)
        current = fit_logit(X, y, [c for e in selected for c in effects[e]])
        steps = []
        seen = {frozenset(selected)}
        limit = self.max_steps if self.max_steps is not None else 4 * max(1, len(effects))
        self._log(f"{self.method.title()} selection: start with {len(selected)} effect(s), -2LogL={-2 * current.llf:.4f}")

        while self.method != "none" and len(steps) < limit:
            changed = False
            if self.method in ("forward", "stepwise"):
                best = self._enter(X, y, effects, selected, current)
                if best is not None and best[2] < self.slentry and frozenset(selected + [best[0]]) not in seen:
                    e, chi2, p, current = best
                    selected.append(e); seen.add(frozenset(selected)); changed = True
                    steps.append({"step": len(steps) + 1, "effect": e, "action": "entered",
                                  "df": len(effects[e]), "chi_square": chi2, "p_value": p})
                    self._log(f"  + {e}: LR chi2={chi2:.4f}, p={p:.4g}")
            if self.method in ("backward", "stepwise") and len(steps) < limit:
                worst = self._remove(current, effects, selected, forced)
                if worst is not None and worst[2] > self.slstay:
                    e, chi2, p = worst
                    reduced = [s for s in selected if s != e]
                    res = self._try_fit(X, y, effects, reduced, e)
                    if res is not None and frozenset(reduced) not in seen:
                        selected, current = reduced, res
                        seen.add(frozenset(selected)); changed = True
                        steps.append({"step": len(steps) + 1, "effect": e, "action": "removed",
                                      "df": len(effects[e]), "chi_square": chi2, "p_value": p})
                        self._log(f"  - {e}: Wald chi2={chi2:.4f}, p={p:.4g}")
            if not changed:
                break

        self.selected_ = selected
        self.columns_ = [c for e in selected for c in effects[e]]
        self.result_ = current
        self.steps_ = pd.DataFrame(steps, columns=["step", "effect", "action", "df", "chi_square", "p_value"])
        self.coefficients_ = self._coefficients(current)
        self.fit_stats_ = {"n": int(current.nobs), "neg2_log_l": float(-2 * current.llf),
                           "aic": float(current.aic), "sc": float(current.bic),
                           "effects": len(selected), "parameters": int(len(current.params))}
        self._log(f"{self.method.title()} selection: final {len(selected)} effect(s) {selected}, AIC={current.aic:.4f}")
        return self

    @staticmethod
    def _coefficients(res):
        try:
            se = res.bse
        except ValueError:
            # no covariance when the Hessian could not be inverted
            se = pd.Series(np.nan, index=res.params.index)
        wald = (res.params / se) ** 2
        return pd.DataFrame({"estimate": res.params, "std_error": se, "wald_chi_square": wald,
                             "p_value": stats.chi2.sf(wald, 1), "odds_ratio": np.exp(res.params)}).rename_axis("parameter").reset_index()

    def _design(self, X):
        X = pd.DataFrame(X, columns=self.feature_names_in_) if not isinstance(X, pd.DataFrame) else X
        return design_matrix(X, self.columns_)

    def decision_function(self, X):
        d = self._design(X)
        return np.asarray(d.values @ self.result_.params[d.columns].values, dtype=float)

    def predict_proba(self, X):
        p1 = 1.0 / (1.0 + np.exp(-np.clip(self.decision_function(X), -500, 500)))
        return np.column_stack([1 - p1, p1])

    def predict(self, X, cutoff=0.5):
        return (self.predict_proba(X)[:, 1] >= cutoff).astype(int)
