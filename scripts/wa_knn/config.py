"""Shared configuration for the weighted k-NN fingerprinting evaluation."""

import os
from dataclasses import dataclass
from typing import Optional

# ---------------------------------------------------------------------------
# Feature files (produced by the upstream feature extractor)
# ---------------------------------------------------------------------------
FEAT_NUM = 1225
FEATURE_SUFFIX = ".feat"
MISSING_TOKEN = "'X'"
MISSING = -1.0

# ---------------------------------------------------------------------------
# Weight learning
# ---------------------------------------------------------------------------
RECO_POINTS_NUM = 5      # good/bad neighbours per learning round
INIT_WEIGHT_LOW = 0.5
INIT_WEIGHT_HIGH = 1.5
SHRINK_RATE = 0.01
DIST_CHUNK_ROWS = 1024   # candidate rows per distance block

# ---------------------------------------------------------------------------
# Defaults (command line)
# ---------------------------------------------------------------------------
DEFAULT_ROUNDS = 2500
DEFAULT_K_MIN = 1
DEFAULT_K_MAX = 2
DEFAULT_K_STEP = 1
DEFAULT_FOLDS = 10
DEFAULT_WORKER_FACTOR = 1

VARIANT_SUFFIX = "-wf"


@dataclass(frozen=True)
class ExperimentConfig:
    """Immutable run configuration handed to every component."""

    sites: int
    instances: int
    open: int = 0
    roffset: int = 0
    folds: int = DEFAULT_FOLDS
    rounds: int = DEFAULT_ROUNDS
    k_min: int = DEFAULT_K_MIN
    k_max: int = DEFAULT_K_MAX
    k_step: int = DEFAULT_K_STEP
    worker_factor: int = DEFAULT_WORKER_FACTOR
    feat_num: int = FEAT_NUM
    verbose: bool = True
    quiet: bool = False
    seed: Optional[int] = None

    @property
    def n_monitored(self) -> int:
        return self.sites * self.instances

    @property
    def n_total(self) -> int:
        return self.sites * self.instances + self.open

    @property
    def test_per_fold(self) -> int:
        return self.n_total // self.folds

    @property
    def n_workers(self) -> int:
        return (os.cpu_count() or 1) * self.worker_factor

    @property
    def output_prefix(self) -> str:
        return f"{self.sites}x{self.instances}+{self.open}"

    def k_values(self):
        return list(range(self.k_min, self.k_max + 1, self.k_step))

    def variant_names(self):
        """Classifier variant names, one per neighbourhood size."""
        return [f"k{k}{VARIANT_SUFFIX}" for k in self.k_values()]

    def validate(self):
        """Raise ValueError on an inconsistent configuration.

        Called before any data is read so a bad run fails immediately.
        """
        if self.sites <= 0 or self.instances <= 0:
            raise ValueError(
                f"sites and instances must be positive, got sites={self.sites} "
                f"instances={self.instances}"
            )
        if self.open < 0 or self.roffset < 0:
            raise ValueError(f"open ({self.open}) and roffset ({self.roffset}) must be >= 0")
        if self.folds < 2:
            raise ValueError(f"folds must be >= 2, got {self.folds}")
        if self.instances % self.folds != 0 or self.open % self.folds != 0:
            raise ValueError(
                f"k ({self.folds}) has to fold instances ({self.instances}) "
                f"and open ({self.open}) evenly"
            )
        if self.rounds < 0:
            raise ValueError(f"rounds must be >= 0, got {self.rounds}")
        if self.k_min < 1 or self.k_step < 1 or self.k_max < self.k_min:
            raise ValueError(
                f"invalid k range: min={self.k_min} max={self.k_max} step={self.k_step}"
            )
        n_train = self.n_total - self.test_per_fold
        if self.k_max > n_train:
            raise ValueError(
                f"k max ({self.k_max}) exceeds training instances per fold ({n_train})"
            )
        if self.worker_factor < 1:
            raise ValueError(f"worker factor must be >= 1, got {self.worker_factor}")
        if self.seed is not None and self.seed < 0:
            raise ValueError(f"seed must be >= 0, got {self.seed}")
        if self.feat_num < 1:
            raise ValueError(f"feat_num must be positive, got {self.feat_num}")
        return self

