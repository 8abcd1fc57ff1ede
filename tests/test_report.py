import numpy as np
import pandas as pd

from semma_kfold.report import Report, plots


def _fold_tables():
    rows = []
    for fold in (1, 2):
        for t in np.linspace(0, 1, 11):
            rows.append({"fold": fold, "cutoff": t, "sensitivity": 1 - t, "fpr": (1 - t) ** 2})
    roc = pd.DataFrame(rows)
    lift = pd.DataFrame({"fold": [1, 1, 2, 2], "depth": [50, 100, 50, 100],
                         "cum_lift": [1.6, 1.0, 1.4, 1.0], "cum_pct_resp": [0.8, 1.0, 0.7, 1.0]})
    stats = pd.DataFrame({"fold": [1, 2], "auc": [0.8, 0.75], "gini": [0.6, 0.5], "ks": [0.5, 0.4],
                          "f1": [0.6, 0.55], "accuracy": [0.8, 0.78], "misc": [0.2, 0.22]})
    return roc, lift, stats


def _report():
    roc, lift, stats = _fold_tables()
    rep = Report("Test report", subtitle="unit test")
    rep.heading("Section <1>").text("Plain & simple.")
    rep.table(stats, "Fit statistics by fold")
    rep.table(pd.DataFrame({"x": range(70)}), "Long table")
    rep.table(stats.set_index("fold")[["auc"]].agg(["mean", "std"]), "Summary", index=True)
    rep.figure(plots.roc_curves(roc, "ROC by fold"), "ROC")
    rep.figure(plots.lift_curves(lift), "Lift")
    rep.figure(plots.fold_stats_bars(stats), "Stats")
    return rep


def test_html_is_self_contained(tmp_path):
    path = _report().to_html(str(tmp_path / "r.html"))
    text = open(path, encoding="utf-8").read()
    assert text.count("data:image/png;base64,") == 3
    assert "<table" in text and "0.8000" in text
    assert "Section &lt;1&gt;" in text and "Plain &amp; simple." in text


def test_pdf_written(tmp_path):
    path = _report().to_pdf(str(tmp_path / "r.pdf"))
    with open(path, "rb") as f:
        assert f.read(5) == b"%PDF-"


def test_write_both_formats(tmp_path, capsys):
    paths = _report().write(str(tmp_path / "out"), ("html", "pdf"))
    assert [p.rsplit(".", 1)[1] for p in paths] == ["html", "pdf"]
    assert "[SAVE] report (pdf)" in capsys.readouterr().out


def test_table_truncation():
    rep = Report("t").table(pd.DataFrame({"x": range(50)}), "Big", max_rows=10)
    kind, df, caption = rep.sections[0]
    assert len(df) == 10 and caption == "Big (first 10 rows)"


def test_plots_without_fold_column():
    roc, lift, _ = _fold_tables()
    fig = plots.roc_curves(roc[roc["fold"] == 1].drop(columns="fold"))
    assert fig.axes[0].get_legend_handles_labels()[1][0] == "model"
    corr = pd.DataFrame(np.eye(3), columns=list("abc"), index=list("abc"))
    assert plots.corr_heatmap(corr).axes
    assert plots.class_balance(pd.Series({0: 80, 1: 20}), pd.Series({0: 80, 1: 80}), "BAD").axes
    assert plots.missingness_bar(pd.Series({"a": 0.2, "b": 0.0})).axes
