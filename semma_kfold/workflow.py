#!/usr/bin/env python3
"""
Loan default workflow with k-fold generalizability check (SEMMA)
================================================================
- Sample: CSV import (demo data if none), oversampling, stratified 60/20/20 partition
- Explore: cardinality, missingness, correlation, Cramer's V
- Modify: median/mode imputation, rare-level grouping, reference coding
- Model: stepwise logistic regression (LR entry, Wald stay)
- Assess: test-set ROC/lift/fit statistics, then k-fold CV of the fitted model
  on the held-out validate partition
- Report: HTML and/or PDF with every table and figure

USAGE:
  python -m semma_kfold --data hmeq.csv --target BAD --outdir outputs
  python -m semma_kfold --k 10 --format pdf            # demo data
"""

import argparse, json, os, sys

import numpy as np
import pandas as pd

from semma_kfold import __version__
from semma_kfold.config import PART_COL, PART_CODES, load_config
from semma_kfold.stages.sample import (load_data, encode_target, oversample, partition,
                                       split_partitions, partition_stats)
from semma_kfold.stages.explore import explore
from semma_kfold.models.train import fit_logistic, selection_tables, save_model
from semma_kfold.models.score import score
from semma_kfold.assess.assess import assess
from semma_kfold.assess.kfold import k_fold_cv
from semma_kfold.report import Report
from semma_kfold.report import plots


def _save(df, outdir, name, index=False):
    path = os.path.join(outdir, name)
    df.to_csv(path, index=index)
    print(f"[SAVE] {name} -> {path}")
    return path


def step_sample(cfg):
    print("\n[Step 1] Sample: import, oversample, partition")
    raw, demo = load_data(cfg.data, seed=cfg.seed)
    print(f"Loaded {len(raw)} rows x {raw.shape[1]} columns" + (" (demo data)" if demo else f" from {cfg.data}"))
    df = encode_target(raw, cfg.target, cfg.event)
    before = df[cfg.target].value_counts().sort_index()
    if cfg.oversample != "none" and not cfg.oversample_train_only:
        df = oversample(df, cfg.target, cfg.oversample_ratio, cfg.oversample, cfg.seed)
    part = partition(df, cfg.target, cfg.fractions, cfg.seed)
    if cfg.oversample != "none" and cfg.oversample_train_only:
        parts = split_partitions(part)
        parts["train"] = oversample(parts["train"], cfg.target, cfg.oversample_ratio, cfg.oversample, cfg.seed)
        part = pd.concat([p.assign(**{PART_COL: PART_CODES[name]}) for name, p in parts.items()], ignore_index=True)
    after = part[cfg.target].value_counts().sort_index()
    print(f"Event rate: {before.get(1, 0) / before.sum():.1%} original -> {after.get(1, 0) / after.sum():.1%} modeled")
    stats = partition_stats(part, cfg.target)
    print(stats.to_string(index=False))
    return {"data": part, "demo": demo, "balance_before": before, "balance_after": after,
            "true_rate": float(before.get(1, 0) / before.sum()), "partition_stats": stats}


def step_explore(cfg, sample):
    print("\n[Step 2] Explore: cardinality, missingness, associations")
    train = split_partitions(sample["data"])["train"]
    tables, interval, nominal = explore(train, cfg.target, cfg.outdir, cfg.max_levels, cfg.exclude)
    print(f"Interval inputs ({len(interval)}): {interval}")
    print(f"Nominal inputs  ({len(nominal)}): {nominal}")
    return {"tables": tables, "interval": interval, "nominal": nominal}


def step_model(cfg, sample, roles):
    print(f"\n[Step 3] Model: {cfg.selection} logistic regression")
    train = split_partitions(sample["data"])["train"]
    model = fit_logistic(train, cfg.target, roles["interval"], roles["nominal"],
                         method=cfg.selection, slentry=cfg.slentry, slstay=cfg.slstay)
    steps, coefs, fit = selection_tables(model)
    _save(steps, cfg.outdir, "model_selection_steps.csv"); _save(coefs, cfg.outdir, "model_coefficients.csv")
    save_model(model, os.path.join(cfg.outdir, "model.joblib"))
    print(f"[SAVE] model -> {os.path.join(cfg.outdir, 'model.joblib')}")
    return {"model": model, "steps": steps, "coefficients": coefs, "fit": fit}


def _event_prob(cfg, sample):
    if not cfg.adjust_priors or cfg.oversample == "none":
        return None
    train = split_partitions(sample["data"])["train"]
    return (float(train[cfg.target].mean()), sample["true_rate"])


def step_score(cfg, sample, fitted):
    print("\n[Step 4] Score & assess the test partition")
    test = split_partitions(sample["data"])["test"]
    scored = score(fitted["model"], test, cfg.target, _event_prob(cfg, sample), cfg.cutoff)
    _save(scored, cfg.outdir, "test_scored.csv")
    a = assess(scored[cfg.target].values, scored[f"P_{cfg.target}1"].values, cfg.cutoff, cfg.lift_bins, cfg.cut_step)
    _save(a.roc, cfg.outdir, "test_roc.csv"); _save(a.lift, cfg.outdir, "test_lift.csv")
    print(pd.Series(a.stats).to_string())
    return {"scored": scored, "assessment": a}


def step_kfold(cfg, sample, fitted):
    print(f"\n[Step 5] k-fold CV ({cfg.k} folds) on the {cfg.cv_partition} partition")
    held_out = split_partitions(sample["data"])[cfg.cv_partition]
    event_prob = _event_prob(cfg, sample)
    if event_prob is None:
        result = k_fold_cv(held_out, fitted["model"], cfg.target, cfg.k, cfg.seed, cfg.cutoff, cfg.lift_bins, cfg.cut_step)
    else:
        adjusted = lambda part: score(fitted["model"], part, cfg.target, event_prob)[f"P_{cfg.target}1"].values
        result = k_fold_cv(held_out, target=cfg.target, k=cfg.k, seed=cfg.seed, cutoff=cfg.cutoff,
                           n_bins=cfg.lift_bins, cut_step=cfg.cut_step, scorer=adjusted)
    result.save(cfg.outdir)
    print(result.summary.to_string())
    return result


def step_report(cfg, sample, roles, fitted, test, kfold):
    print("\n[Step 6] Report")
    t = roles["tables"]
    rep = Report("Loan default model: stepwise logistic regression with k-fold assessment")
    rep.heading("Data").text(
        f"Target '{cfg.target}', {len(sample['data'])} modeled rows"
        + (" (synthetic demo data)." if sample["demo"] else f" from {cfg.data}.")
        + f" Oversampling: {cfg.oversample}" + (" (training partition only)." if cfg.oversample_train_only else "."))
    rep.table(t["cardinality"], "Column cardinality (training partition)")
    rep.table(t["target"], "Target distribution (training partition)")
    rep.table(t["association"], "Cramer's V: nominal inputs vs target")
    if cfg.plots:
        miss = t["missingness"].set_index("column")["pct_missing"]
        rep.figure(plots.missingness_bar(miss), "Fraction missing per column")
        if len(t["correlation"]) > 1:
            rep.figure(plots.corr_heatmap(t["correlation"]), "Pearson correlation of interval inputs and target")
        rep.figure(plots.class_balance(sample["balance_before"], sample["balance_after"], cfg.target),
                   "Class counts before and after oversampling")
    rep.heading("Partitions").table(sample["partition_stats"], "Rows and event rate per partition")
    rep.heading("Model").text(f"Selection: {cfg.selection} (entry {cfg.slentry}, stay {cfg.slstay}). "
                              f"Selected effects: {', '.join(fitted['model'].named_steps['model'].selected_) or 'none'}.")
    rep.table(fitted["steps"], "Selection steps")
    rep.table(fitted["coefficients"], "Parameter estimates")
    rep.table(pd.DataFrame([fitted["fit"]]), "Model fit statistics")
    rep.heading("Test partition assessment")
    rep.table(pd.DataFrame([test["assessment"].stats]), "Fit statistics (test)")
    rep.table(test["assessment"].lift, "Lift (test)")
    if cfg.plots:
        rep.figure(plots.roc_curves(test["assessment"].roc, "ROC (test)"), "ROC curve, test partition")
        rep.figure(plots.lift_curves(test["assessment"].lift, title="Cumulative lift (test)"), "Cumulative lift, test partition")
    rep.heading(f"{kfold.k}-fold cross-validation ({cfg.cv_partition} partition)")
    rep.text("The fitted model scores each fold of the held-out partition; the spread across folds "
             "indicates how stable its performance is on unseen data.")
    rep.table(kfold.fitstats, "Fit statistics by fold")
    rep.table(kfold.summary, "Fit statistics across folds", index=True)
    if cfg.plots:
        rep.figure(plots.roc_curves(kfold.roc, "ROC by fold"), "ROC curves by fold")
        rep.figure(plots.lift_curves(kfold.lift, title="Cumulative lift by fold"), "Cumulative lift by fold")
        rep.figure(plots.lift_curves(kfold.lift, col="cum_pct_resp", title="Cumulative captured response by fold"),
                   "Cumulative captured response by fold")
        rep.figure(plots.fold_stats_bars(kfold.fitstats), "Fit statistics by fold")
    return rep.write(cfg.outdir, cfg.formats)


def run(cfg):
    os.makedirs(cfg.outdir, exist_ok=True)
    np.random.seed(cfg.seed)
    sample = step_sample(cfg)
    roles = step_explore(cfg, sample)
    fitted = step_model(cfg, sample, roles)
    test = step_score(cfg, sample, fitted)
    kfold = step_kfold(cfg, sample, fitted)
    reports = step_report(cfg, sample, roles, fitted, test, kfold)
    meta = {"version": __version__, "config": cfg.to_dict(), "demo_data": sample["demo"],
            "selected_effects": fitted["model"].named_steps["model"].selected_,
            "model_fit": fitted["fit"], "test_stats": test["assessment"].stats,
            "kfold_summary": kfold.summary.reset_index().to_dict(orient="records"), "reports": reports}
    meta_path = os.path.join(cfg.outdir, "run_meta.json")
    with open(meta_path, "w") as f:
        json.dump(meta, f, indent=2, default=float)
    print(f"[SAVE] run metadata -> {meta_path}")
    print("\nDone. Inspect outputs at:", os.path.abspath(cfg.outdir))
    return {"partition_stats": sample["partition_stats"], "model": fitted["model"],
            "test_stats": test["assessment"].stats, "kfold": kfold, "reports": reports}


def build_parser():
    parser = argparse.ArgumentParser(prog="semma-kfold",
                                     description="Stepwise logistic regression with k-fold generalizability assessment")
    parser.add_argument("--data", type=str, help="CSV file (synthetic demo data when omitted)")
    parser.add_argument("--config", type=str, help="JSON file with WorkflowConfig fields")
    parser.add_argument("--outdir", type=str, help="Directory for tables, model and report")
    parser.add_argument("--target", type=str, help="Binary target column")
    parser.add_argument("--event", type=str, help="Target level treated as the event")
    parser.add_argument("--seed", type=int)
    parser.add_argument("--k", type=int, help="Number of folds")
    parser.add_argument("--cv-partition", choices=["validate", "test", "train"])
    parser.add_argument("--fractions", type=float, nargs=3, metavar=("TRAIN", "VALIDATE", "TEST"))
    parser.add_argument("--oversample", choices=["random", "smote", "none"])
    parser.add_argument("--oversample-ratio", type=float, help="Minority/majority ratio after oversampling")
    parser.add_argument("--oversample-train-only", action="store_true", default=None,
                        help="Oversample the training partition only")
    parser.add_argument("--adjust-priors", action="store_true", default=None,
                        help="Correct scored probabilities back to the original event rate")
    parser.add_argument("--selection", choices=["forward", "backward", "stepwise", "none"])
    parser.add_argument("--slentry", type=float); parser.add_argument("--slstay", type=float)
    parser.add_argument("--cutoff", type=float); parser.add_argument("--lift-bins", type=int)
    parser.add_argument("--exclude", nargs="*", help="Columns to leave out of the model")
    parser.add_argument("--format", dest="formats", choices=["html", "pdf"], nargs="+")
    parser.add_argument("--no-plots", dest="plots", action="store_false", default=None)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None):
    parser = build_parser()
    args = vars(parser.parse_args(argv))
    config_path = args.pop("config")
    try:
        cfg = load_config(config_path, **args)
        run(cfg)
    except (ValueError, KeyError, FileNotFoundError) as e:
        parser.error(e.args[0] if e.args else str(e))
    return 0


if __name__ == "__main__":
    sys.exit(main())
