"""Confusion counts and the cross-fold recall, precision, F1, FPR, accuracy.

Counter semantics (open-world setting):
    tp   monitored instance classified as its own site
    fpp  monitored instance classified as another monitored site
    fnp  unmonitored instance classified as some monitored site
    fn   monitored instance classified as unmonitored
    tn   unmonitored instance classified as unmonitored

Every metric is computed per fold and averaged over all folds. A fold whose
ratio is undefined (zero denominator) adds nothing to the sum but still
counts in the divisor.
"""

import math
from dataclasses import dataclass, fields


@dataclass
class ConfusionCounts:
    tp: int = 0
    fpp: int = 0
    fnp: int = 0
    fn: int = 0
    tn: int = 0

    def add(self, other):
        """Merge other into self."""
        self.tp += other.tp
        self.fpp += other.fpp
        self.fnp += other.fnp
        self.fn += other.fn
        self.tn += other.tn
        return self

    def __add__(self, other):
        return ConfusionCounts(**{f.name: getattr(self, f.name) for f in fields(self)}).add(other)

    @property
    def total(self):
        return self.tp + self.fpp + self.fnp + self.fn + self.tn


def get_result(output, trueclass, sites):
    """Confusion outcome of a single classification."""
    m = ConfusionCounts()
    if output == trueclass:
        if trueclass < sites:
            m.tp += 1
        else:
            m.tn += 1
    elif output == sites:
        # said unmonitored for a monitored site
        m.fn += 1
    elif trueclass == sites:
        m.fnp += 1
    else:
        m.fpp += 1
    return m


def _ratio(num, den):
    if den == 0:
        return math.nan
    return num / den


def fold_recall(m):
    """TPR = TP / (TP + FN + FPP)"""
    return _ratio(m.tp, m.tp + m.fn + m.fpp)


def fold_precision(m):
    """TP / (TP + FPP + FNP)"""
    return _ratio(m.tp, m.tp + m.fpp + m.fnp)


def fold_fpr(m):
    """FP / non-monitored elements = (FPP + FNP) / (TN + FNP)"""
    return _ratio(m.fpp + m.fnp, m.tn + m.fnp)


def fold_f1score(m):
    p = fold_precision(m)
    r = fold_recall(m)
    if math.isnan(p) or math.isnan(r) or p + r == 0:
        return math.nan
    return 2 * (p * r) / (p + r)


def fold_accuracy(m):
    """(TP + TN) / everything"""
    return _ratio(m.tp + m.tn, m.total)


def _fold_mean(per_fold, data):
    if not data:
        return math.nan
    total = 0.0
    for m in data:
        d = per_fold(m)
        if not math.isnan(d):
            total += d
    return total / len(data)


def recall(data):
    return _fold_mean(fold_recall, data)


def precision(data):
    return _fold_mean(fold_precision, data)


def fpr(data):
    return _fold_mean(fold_fpr, data)


def f1score(data):
    return _fold_mean(fold_f1score, data)


def accuracy(data):
    return _fold_mean(fold_accuracy, data)


METRICS = {
    "recall": recall,
    "precision": precision,
    "f1score": f1score,
    "fpr": fpr,
    "accuracy": accuracy,
}


def summarize(data):
    """All five cross-fold metrics for one list of per-fold counts."""
    return {name: fn(data) for name, fn in METRICS.items()}
