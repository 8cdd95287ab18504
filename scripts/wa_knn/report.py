"""Write the recall/precision CSV tables, the run log and the weights table."""

from datetime import datetime
from pathlib import Path

import numpy as np
import polars as pl

from .metrics import precision, recall, summarize

LOG_HEADER = "work,recall,precision,f1score,fpr,accuracy\n"


def format_results(works, all_results, attacks, verbose=True):
    """Human readable result block per attack.

    One line per work unit, followed (if verbose) by the raw per-fold
    counters.
    """
    output = {}
    for attack in attacks:
        text = LOG_HEADER
        for work, results in zip(works, all_results):
            m = results[attack]
            s = summarize(m)
            text += (f"{work},{s['recall']:.3f},{s['precision']:.3f},{s['f1score']:.3f},"
                     f"{s['fpr']:.3f},{s['accuracy']:.3f}\n")
            if verbose:
                for c in m:
                    text += f"\ttp{c.tp},fpp{c.fpp},fnp{c.fnp},fn{c.fn},tn{c.tn}\n"
        output[attack] = text
    return output


def metric_table(metric, works, all_results, attacks):
    """polars DataFrame with one row per work unit and one column per attack."""
    data = {"work": list(works)}
    for attack in attacks:
        data[attack] = [float(metric(results[attack])) for results in all_results]
    return pl.DataFrame(data)


def weights_table(works, all_weights):
    """polars DataFrame with one row per (work, fold) and one column per feature."""
    rows_work, rows_fold = [], []
    for work, weights in zip(works, all_weights):
        rows_work.extend([work] * len(weights))
        rows_fold.extend(range(len(weights)))
    mat = np.vstack([np.asarray(w, dtype=np.float64) for weights in all_weights for w in weights])

    data = {"work": rows_work, "fold": rows_fold}
    for i in range(mat.shape[1]):
        data[f"f{i + 1}"] = mat[:, i]
    return pl.DataFrame(data)


def write_reports(out_dir, cfg, works, all_results, all_weights):
    """Write every output file of a run into out_dir.

    Returns:
        dict with the written paths (recall, precision, log, weights)
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    prefix = cfg.output_prefix
    attacks = sorted(all_results[0]) if all_results else []

    paths = {
        "recall": out_dir / f"{prefix}-recall.csv",
        "precision": out_dir / f"{prefix}-precision.csv",
        "log": out_dir / f"{prefix}.log",
        "weights": out_dir / f"{prefix}.weights",
    }

    metric_table(recall, works, all_results, attacks).write_csv(
        paths["recall"], float_precision=3)
    metric_table(precision, works, all_results, attacks).write_csv(
        paths["precision"], float_precision=3)

    output = format_results(works, all_results, attacks, verbose=cfg.verbose)
    flog = f"{datetime.now()}: wa-knn for {prefix}\n\n"
    for attack in attacks:
        flog += f"{attack} attack\n{output[attack]}\n"
    paths["log"].write_text(flog)

    if all_weights:
        weights_table(works, all_weights).write_csv(paths["weights"])

    return paths
