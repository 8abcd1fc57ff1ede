import json
from dataclasses import dataclass, field, fields, asdict, replace
from pathlib import Path
from typing import Optional, Tuple

# -------------------- Defaults ---------------------------------------------
SEED        = 42
TARGET      = "BAD"
EVENT       = None            # None -> use 1 / "1" / the minority level
PART_FRACS  = (0.6, 0.2, 0.2) # train, validate, test
PART_CODES  = {"train": 1, "validate": 0, "test": 2}
PART_COL    = "_PartInd_"
FOLD_COL    = "_Fold_"
K_FOLDS     = 5
CUTOFF      = 0.5
LIFT_BINS   = 20
CUT_STEP    = 0.01
OVERSAMPLE_RATIO = 1.0        # minority / majority after balancing
SLENTRY     = 0.05
SLSTAY      = 0.05
MAX_LEVELS  = 10              # numeric columns with <= this many levels are nominal
RARE_MIN_COUNT = 8
RARE_MIN_PROP  = 0.01
OUTDIR      = "outputs"
# ----------------------------------------------------------------------------


@dataclass
class WorkflowConfig:
    data: Optional[str] = None
    outdir: str = OUTDIR
    target: str = TARGET
    event: Optional[str] = EVENT
    seed: int = SEED
    fractions: Tuple[float, float, float] = PART_FRACS
    oversample: str = "random"           # random | smote | none
    oversample_ratio: float = OVERSAMPLE_RATIO
    oversample_train_only: bool = False
    selection: str = "stepwise"          # forward | backward | stepwise | none
    slentry: float = SLENTRY
    slstay: float = SLSTAY
    k: int = K_FOLDS
    cv_partition: str = "validate"
    cutoff: float = CUTOFF
    lift_bins: int = LIFT_BINS
    cut_step: float = CUT_STEP
    max_levels: int = MAX_LEVELS
    adjust_priors: bool = False
    formats: Tuple[str, ...] = ("html", "pdf")
    plots: bool = True
    exclude: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        self.fractions = tuple(float(f) for f in self.fractions)
        self.formats = tuple(self.formats)
        self.exclude = tuple(self.exclude)
        if len(self.fractions) != 3:
            raise ValueError(f"fractions needs 3 values (train, validate, test), got {self.fractions}")
        if self.cv_partition not in PART_CODES:
            raise ValueError(f"cv_partition must be one of {sorted(PART_CODES)}, got {self.cv_partition!r}")
        bad = set(self.formats) - {"html", "pdf"}
        if bad:
            raise ValueError(f"Unknown report format(s): {sorted(bad)}")

    def to_dict(self):
        return asdict(self)


def load_config(path=None, **overrides) -> WorkflowConfig:
    """Defaults <- JSON file <- explicit overrides (None values are ignored)."""
    values = {}
    if path:
        values.update(json.loads(Path(path).read_text()))
    values.update({k: v for k, v in overrides.items() if v is not None})
    known = {f.name for f in fields(WorkflowConfig)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown config key(s): {unknown}")
    return replace(WorkflowConfig(), **values)
