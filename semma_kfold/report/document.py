import base64, html, io, os
from datetime import datetime

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages
import pandas as pd

ROWS_PER_PAGE = 28

CSS = [
    "body{font-family:Arial, sans-serif;max-width:1100px;margin:24px auto;padding:0 12px;color:#111827}",
    ".card{margin:16px 0;padding:12px 16px;border:1px solid #e5e7eb;border-radius:10px;}",
    "img{max-width:100%;height:auto;border:1px solid #e5e7eb;border-radius:8px;}",
    "table{border-collapse:collapse;font-size:12px} th,td{border:1px solid #e5e7eb;padding:3px 8px;text-align:right}",
    "th{background:#f3f4f6} h1{margin:0 0 10px 0} h2{margin:24px 0 8px;border-bottom:1px solid #e5e7eb}",
    "p.caption{color:#6b7280;font-size:12px}",
]


def _fmt(df):
    out = df.copy()
    for c in out.columns:
        if pd.api.types.is_float_dtype(out[c]):
            out[c] = out[c].map(lambda v: "" if pd.isna(v) else f"{v:.4f}")
    return out


class Report:
    """Ordered report sections rendered to HTML and/or PDF."""

    def __init__(self, title, subtitle=None):
        self.title = title
        self.subtitle = subtitle or datetime.now().strftime("Generated %Y-%m-%d %H:%M")
        self.sections = []

    def heading(self, text):
        self.sections.append(("heading", text, None)); return self

    def text(self, text):
        self.sections.append(("text", text, None)); return self

    def table(self, df, caption="", index=False, max_rows=None):
        df = df if index is False else df.reset_index()
        if max_rows is not None and len(df) > max_rows:
            df = df.head(max_rows)
            caption = f"{caption} (first {max_rows} rows)".strip()
        self.sections.append(("table", df, caption)); return self

    def figure(self, fig, caption=""):
        buf = io.BytesIO()
        fig.savefig(buf, format="png", dpi=110, bbox_inches="tight")
        self.sections.append(("figure", (fig, buf.getvalue()), caption)); return self

    # -------- HTML --------
    def to_html(self, path):
        parts = ["<!doctype html><meta charset='utf-8'>", f"<title>{html.escape(self.title)}</title>",
                 "<style>", *CSS, "</style>",
                 f"<h1>{html.escape(self.title)}</h1>", f"<p class='caption'>{html.escape(self.subtitle)}</p>"]
        for kind, body, caption in self.sections:
            if kind == "heading":
                parts.append(f"<h2>{html.escape(body)}</h2>")
            elif kind == "text":
                parts.append(f"<p>{html.escape(body)}</p>")
            elif kind == "table":
                parts += ["<div class='card'>", _fmt(body).to_html(index=False, border=0, na_rep=""),
                          f"<p class='caption'>{html.escape(caption)}</p>" if caption else "", "</div>"]
            else:
                png = base64.b64encode(body[1]).decode("ascii")
                parts += ["<div class='card'>", f"<img src='data:image/png;base64,{png}' alt='{html.escape(caption)}'>",
                          f"<p class='caption'>{html.escape(caption)}</p>" if caption else "", "</div>"]
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(parts))
        return path

    # -------- PDF --------
    def _text_page(self, pdf, lines):
        fig = plt.figure(figsize=(8.5, 11)); y = 0.95
        for size, line in lines:
            fig.text(0.07, y, line, fontsize=size, va="top", wrap=True)
            y -= 0.03 if size <= 10 else 0.045
        pdf.savefig(fig); plt.close(fig)

    def _table_pages(self, pdf, df, caption):
        shown = _fmt(df).astype(str)
        for start in range(0, max(1, len(shown)), ROWS_PER_PAGE):
            chunk = shown.iloc[start:start + ROWS_PER_PAGE]
            fig, ax = plt.subplots(figsize=(11, 8.5)); ax.axis("off")
            if len(chunk):
                tbl = ax.table(cellText=chunk.values, colLabels=list(chunk.columns), loc="upper center")
                tbl.auto_set_font_size(False); tbl.set_fontsize(7); tbl.scale(1, 1.2)
            else:
                ax.text(0.5, 0.9, "(no rows)", ha="center")
            if caption:
                ax.set_title(caption if start == 0 else f"{caption} (cont.)", fontsize=10)
            pdf.savefig(fig); plt.close(fig)

    def to_pdf(self, path):
        with PdfPages(path) as pdf:
            pending = [(18, self.title), (10, self.subtitle), (10, "")]
            for kind, body, caption in self.sections:
                if kind == "heading":
                    pending.append((14, body))
                elif kind == "text":
                    pending.append((10, body))
                else:
                    if pending:
                        self._text_page(pdf, pending); pending = []
                    if kind == "table":
                        self._table_pages(pdf, body, caption)
                    else:
                        fig = body[0]
                        if caption:
                            fig.suptitle(caption, fontsize=9, y=0.01, va="bottom")
                        pdf.savefig(fig)
            if pending:
                self._text_page(pdf, pending)
            info = pdf.infodict(); info["Title"] = self.title
        return path

    def close_figures(self):
        for kind, body, _ in self.sections:
            if kind == "figure":
                plt.close(body[0])

    def write(self, outdir, formats=("html", "pdf"), name="report"):
        os.makedirs(outdir, exist_ok=True)
        paths = []
        for fmt in formats:
            path = os.path.join(outdir, f"{name}.{fmt}")
            {"html": self.to_html, "pdf": self.to_pdf}[fmt](path)
            print(f"[SAVE] report ({fmt}) -> {path}")
            paths.append(path)
        self.close_figures()
        return paths
