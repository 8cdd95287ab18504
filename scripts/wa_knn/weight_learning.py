"""Distance metric learning: per-fold feature weights for the k-NN attack.

Each round takes a training instance, finds its nearest same-site
("good") and nearest other-class ("bad") neighbours under the current
weights, and shrinks the weights of features that fail to keep the bad
neighbours further away than the good ones.
"""

import numpy as np

from . import config
from .distance import dist_to_all, extract_min, present_features
from .folds import held_out_mask


def fold_rng(cfg, fold):
    """Random generator for one fold, reproducible when cfg.seed is set."""
    if cfg.seed is None:
        return np.random.default_rng()
    return np.random.default_rng([cfg.seed, fold])


def _feature_diff(query, rows):
    """Per-feature |query - row|, 0 where either side is missing."""
    diff = np.abs(rows - query)
    diff[(rows == config.MISSING) | (query == config.MISSING)] = 0.0
    return diff


def learning_round(features, weight, i, held, cfg):
    """Run one weight-learning round for training instance i.

    ``weight`` is updated in place.

    Args:
        features: (S*I + O, F) matrix, monitored rows first
        weight: (F,) current weights
        i: global index of a monitored training instance
        held: (S*I + O,) boolean held-out mask of the current fold
        cfg: ExperimentConfig

    Returns:
        dict with good, bad (neighbour indices), max_good and bad_count (per
        feature), min_bad and severity
    """
    reco = config.RECO_POINTS_NUM
    query = features[i]
    present = present_features(query)

    dists = dist_to_all(query, features, weight, present)
    dists[held] = np.inf
    dists[i] = np.inf

    cur_site = i // cfg.instances
    lo, hi = cur_site * cfg.instances, (cur_site + 1) * cfg.instances

    # S_good: nearest instances of the same site
    good = []
    max_good_dist = 0.0
    block = dists[lo:hi]
    for _ in range(reco):
        j = extract_min(block)
        if np.isinf(block[j]):
            break
        max_good_dist = max(max_good_dist, block[j])
        block[j] = np.inf
        good.append(lo + j)

    # don't consider any instance of the current site from here on
    dists[lo:hi] = np.inf

    # S_bad: nearest instances of any other class
    bad = []
    bad_dists = []
    for _ in range(reco):
        j = extract_min(dists)
        if np.isinf(dists[j]):
            break
        bad.append(j)
        bad_dists.append(dists[j])
        dists[j] = np.inf

    if good:
        max_good = _feature_diff(query, features[good]).max(axis=0)
    else:
        max_good = np.zeros(cfg.feat_num)

    if bad:
        bad_count = (_feature_diff(query, features[bad]) <= max_good).sum(axis=0)
    else:
        bad_count = np.zeros(cfg.feat_num, dtype=np.int64)
    min_bad = int(bad_count.min())

    # how poorly the query is classified under the full weighted distance
    severity = int(np.sum(np.asarray(bad_dists) <= max_good_dist))

    shrink = bad_count != min_bad
    weight[shrink] -= (
        weight[shrink]
        * config.SHRINK_RATE
        * (bad_count[shrink] / reco)
        * (1 + severity) / reco
    )
    weight += min_bad

    return {
        "good": good,
        "bad": bad,
        "max_good": max_good,
        "bad_count": bad_count,
        "min_bad": min_bad,
        "severity": severity,
    }


def learn_weights(dataset, cfg, fold, rng=None, initial=None):
    """Learn the global feature weights for one fold.

    Held-out instances of the fold never serve as query or neighbour.

    Args:
        dataset: FeatureDataset
        cfg: ExperimentConfig
        fold: 0-based fold index
        rng: numpy Generator, defaults to fold_rng(cfg, fold)
        initial: optional (F,) starting weights, random in [0.5, 1.5) if None

    Returns:
        (F,) float64 weight array
    """
    if rng is None:
        rng = fold_rng(cfg, fold)
    features = dataset.features
    held = held_out_mask(cfg, fold)

    if initial is None:
        weight = rng.uniform(config.INIT_WEIGHT_LOW, config.INIT_WEIGHT_HIGH, size=cfg.feat_num)
    else:
        weight = np.array(initial, dtype=np.float64)

    # learn more from different sites than from different instances of one site
    site_perm = rng.permutation(cfg.sites)
    ctr = 0
    for _ in range(cfg.rounds):
        while True:
            i = int(site_perm[ctr % cfg.sites]) * cfg.instances + int(rng.integers(cfg.instances))
            ctr += 1
            if not held[i]:
                break
        learning_round(features, weight, i, held, cfg)

    return weight
