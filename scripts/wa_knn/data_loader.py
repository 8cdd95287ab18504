"""Read feature files into monitored and unmonitored matrices."""

import math
from pathlib import Path

import numpy as np

from . import config


def parse_feature_string(token):
    """Parse one numeric feature token.

    NaN and infinite values are mapped to the missing sentinel, the
    extractor output can be messy. Digit-group underscores, which float()
    would accept, are rejected.
    """
    if "_" in token:
        raise ValueError(f"malformed feature value {token!r}")
    try:
        val = float(token)
    except ValueError as err:
        raise ValueError(f"malformed feature value {token!r}") from err
    if math.isnan(val) or math.isinf(val):
        return config.MISSING
    return val


def read_feature_file(path, feat_num=config.FEAT_NUM):
    """Read one feature vector file.

    Tokens are whitespace separated, the literal 'X' token marks a
    missing feature.

    Returns:
        (feat_num,) float64 array, missing features set to config.MISSING
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"failed to find file to read features for filename {path}")
    tokens = path.read_text().split()

    feat = []
    for tok in tokens:
        if tok == config.MISSING_TOKEN:
            feat.append(config.MISSING)
        else:
            try:
                feat.append(parse_feature_string(tok))
            except ValueError as err:
                raise ValueError(f"{path}: {err}") from err

    if len(feat) != feat_num:
        raise ValueError(f"{path}: expected {feat_num} features, got {len(feat)}")
    return np.array(feat, dtype=np.float64)


def site_of_filename(name):
    """Return the site number encoded in a feature file name, or None.

    Monitored files are named "{site}-{instance}.feat", unmonitored files
    either the same or "{site}.feat".
    """
    if not name.endswith(config.FEATURE_SUFFIX):
        return None
    stem = name[: -len(config.FEATURE_SUFFIX)]
    site = stem.split("-", 1)[0]
    try:
        return int(site)
    except ValueError:
        return None


def monitored_filename(site, instance):
    return f"{site}-{instance}{config.FEATURE_SUFFIX}"


class FeatureDataset:
    """Monitored and unmonitored feature matrices for one unit of work.

    Rows of ``monitored`` are ordered site * instances + instance, the
    unmonitored rows follow them in the global index space.
    """

    def __init__(self, monitored, unmonitored, cfg, open_sites=None):
        """
        Args:
            monitored: (S*I, F) float array
            unmonitored: (O, F) float array
            cfg: ExperimentConfig the matrices were read with
            open_sites: site numbers of the unmonitored rows, in order
        """
        self.monitored = np.asarray(monitored, dtype=np.float64)
        self.unmonitored = np.asarray(unmonitored, dtype=np.float64).reshape(-1, cfg.feat_num)
        self.cfg = cfg
        self.open_sites = list(open_sites) if open_sites is not None else []

        if self.monitored.shape != (cfg.n_monitored, cfg.feat_num):
            raise ValueError(
                f"monitored matrix has shape {self.monitored.shape}, "
                f"expected {(cfg.n_monitored, cfg.feat_num)}"
            )
        if self.unmonitored.shape[0] != cfg.open:
            raise ValueError(
                f"unmonitored matrix has {self.unmonitored.shape[0]} rows, expected {cfg.open}"
            )

        self.features = np.vstack([self.monitored, self.unmonitored])
        self.features.flags.writeable = False

    def __len__(self):
        return self.features.shape[0]

    def vector(self, index):
        return self.features[index]


def load_features(root, cfg):
    """Read all monitored sites and cfg.open unmonitored sites under root.

    Monitored sites are numbered cfg.roffset+1 .. cfg.roffset+cfg.sites.
    Unmonitored sites are picked from the remaining files in lexicographic
    file name order, taking the first file seen for each unclaimed site.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"failed to read unmonitored folder ({root})")

    done = set()
    monitored = []
    for i in range(cfg.sites):
        site = cfg.roffset + i + 1
        for j in range(cfg.instances):
            monitored.append(read_feature_file(root / monitored_filename(site, j), cfg.feat_num))
        done.add(site)

    unmonitored = []
    open_sites = []
    if cfg.open > 0:
        for entry in sorted(root.iterdir(), key=lambda p: p.name):
            if len(open_sites) >= cfg.open:
                break
            if entry.is_dir():
                continue
            site = site_of_filename(entry.name)
            if site is None or site in done:
                continue
            unmonitored.append(read_feature_file(entry, cfg.feat_num))
            open_sites.append(site)
            done.add(site)

    if len(open_sites) < cfg.open:
        raise FileNotFoundError(
            f"failed to read {cfg.open} open world sites from {root} "
            f"(found {len(open_sites)})"
        )

    unmonitored = np.array(unmonitored, dtype=np.float64).reshape(-1, cfg.feat_num)
    return FeatureDataset(np.array(monitored), unmonitored, cfg, open_sites)


def work_unit_dirs(datadir):
    """List (name, path) units of work under datadir.

    Every subdirectory is one unit of work, sorted by name. A data folder
    without subdirectories is itself the only unit.
    """
    root = Path(datadir)
    if not root.is_dir():
        raise FileNotFoundError(f"failed to read data folder ({root})")
    subdirs = sorted((p for p in root.iterdir() if p.is_dir()), key=lambda p: p.name)
    if not subdirs:
        return [(str(datadir), root)]
    return [(p.name, p) for p in subdirs]
