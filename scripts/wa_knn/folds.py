"""Deterministic k-fold membership over the global instance index space.

Monitored instance i sits at position i % instances within its site, the
unmonitored instance j at position j % open within the unmonitored set. A
fold holds out one contiguous block of positions. Weight learning and
evaluation both go through held_out_mask so they agree on every split.
"""

import numpy as np


def _in_test_block(position, count, fold, folds):
    """True where position lies in fold's block of count // folds positions.

    Works on ints and on numpy arrays alike.
    """
    fold_size = count // folds
    return (position >= fold * fold_size) & (position < (fold + 1) * fold_size)


def instance_for_testing(i, fold, cfg):
    """True if global index i is held out for testing in fold."""
    if i < cfg.n_monitored:
        return bool(_in_test_block(i % cfg.instances, cfg.instances, fold, cfg.folds))
    return bool(_in_test_block((i - cfg.n_monitored) % cfg.open, cfg.open, fold, cfg.folds))


def held_out_mask(cfg, fold):
    """(S*I + O,) boolean array, True where the instance is held out."""
    mon_pos = np.arange(cfg.n_monitored) % cfg.instances
    mask_mon = _in_test_block(mon_pos, cfg.instances, fold, cfg.folds)

    if cfg.open == 0:
        return mask_mon
    mask_open = _in_test_block(np.arange(cfg.open), cfg.open, fold, cfg.folds)
    return np.concatenate([mask_mon, mask_open])


def held_out_indices(cfg, fold):
    """Global indices held out in fold, ascending."""
    return np.flatnonzero(held_out_mask(cfg, fold))
