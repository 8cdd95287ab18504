"""Nearest-neighbour search and the unanimous k-NN decision rule."""

import numpy as np

from .distance import dist_to_all, extract_min, present_features
from .folds import held_out_mask


def class_of_index(index, cfg):
    """Class label of a global index; all unmonitored instances map to cfg.sites."""
    label = index // cfg.instances
    if label > cfg.sites:
        # the last class represents all open-world sites
        label = cfg.sites
    return label


def classify(test, dataset, weight, neighbours, fold, held=None):
    """Rank the training instances nearest to instance ``test``.

    Args:
        test: global index of the instance to classify
        dataset: FeatureDataset
        weight: (F,) weights learned for this fold
        neighbours: number of neighbours to return
        fold: 0-based fold index
        held: optional precomputed held_out_mask(cfg, fold)

    Returns:
        (classes, true_class): labels of the nearest neighbours, closest
        first, and the label of the test instance
    """
    cfg = dataset.cfg
    if held is None:
        held = held_out_mask(cfg, fold)

    testfeat = dataset.vector(test)
    present = present_features(testfeat)
    dists = dist_to_all(testfeat, dataset.features, weight, present)
    dists[held] = np.inf

    classes = []
    for _ in range(neighbours):
        index = extract_min(dists)
        classes.append(class_of_index(index, cfg))
        dists[index] = np.inf

    return classes, class_of_index(test, cfg)


def get_knn_class(classes, k, sites):
    """Guess unmonitored (``sites``) unless the k closest classes all agree."""
    for i in range(k - 1):
        if classes[i] != classes[i + 1]:
            return sites
    return classes[0]
