"""Weighted Manhattan distance over jointly present features."""

import numpy as np

from . import config


def present_features(vec):
    """Indices of the features that are not missing in vec."""
    return np.flatnonzero(np.asarray(vec) != config.MISSING)


def dist(a, b, weight, present):
    """Distance from query a to candidate b.

    Only features present in a (``present``) and also present in b
    contribute, so dist is not symmetric. This is the one-pair reference
    form; dist_to_all computes the same values for a whole matrix.
    """
    a_p = a[present]
    b_p = b[present]
    mask = b_p != config.MISSING
    return float(np.sum(weight[present][mask] * np.abs(a_p[mask] - b_p[mask])))


def dist_to_all(a, candidates, weight, present, chunk=config.DIST_CHUNK_ROWS):
    """Distance from query a to every row of candidates.

    Rows are processed ``chunk`` at a time so the temporaries stay a
    fixed size regardless of the dataset.

    Args:
        a: (F,) query vector
        candidates: (N, F) matrix
        weight: (F,) feature weights
        present: indices of features present in a
        chunk: candidate rows per block

    Returns:
        (N,) float64 array
    """
    a_p = a[present]
    w_p = weight[present]
    out = np.empty(len(candidates), dtype=np.float64)
    for start in range(0, len(candidates), chunk):
        sub = candidates[start:start + chunk, present]
        missing = sub == config.MISSING
        np.subtract(sub, a_p, out=sub)
        np.abs(sub, out=sub)
        sub[missing] = 0.0
        out[start:start + chunk] = sub @ w_p
    return out


def extract_min(dists):
    """Index of the smallest entry, first one on ties."""
    return int(np.argmin(dists))
