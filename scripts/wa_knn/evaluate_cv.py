"""Parallel k-fold cross-validation of the weighted k-NN attack.

Phase 1 learns one weight vector per fold, the folds run concurrently in a
process pool. Phase 2 classifies every held-out instance of a fold in a
thread pool that only reads the dataset and the fold's weights; the
per-instance outcomes are merged once the pool has drained.
"""

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed

from .classifier import classify, get_knn_class
from .data_loader import load_features, work_unit_dirs
from .folds import held_out_indices, held_out_mask
from .metrics import ConfusionCounts, get_result, summarize
from .report import write_reports
from .weight_learning import learn_weights


def evaluate_instance(i, fold, weight, dataset, held=None):
    """Classify instance i with every k variant.

    Returns:
        dict variant name -> single-outcome ConfusionCounts
    """
    cfg = dataset.cfg
    classes, trueclass = classify(i, dataset, weight, cfg.k_max, fold, held)

    result = {}
    for k, name in zip(cfg.k_values(), cfg.variant_names()):
        result[name] = get_result(get_knn_class(classes, k, cfg.sites), trueclass, cfg.sites)
    return result


def learn_all_weights(dataset, cfg, use_processes=True):
    """Learn the weights of every fold concurrently.

    Weights don't change within a fold, so they are computed once up front.

    Returns:
        list of (F,) arrays indexed by fold
    """
    pool_cls = ProcessPoolExecutor if use_processes else ThreadPoolExecutor
    weights = [None] * cfg.folds
    with pool_cls(max_workers=min(cfg.folds, cfg.n_workers)) as pool:
        futures = {pool.submit(learn_weights, dataset, cfg, fold): fold
                   for fold in range(cfg.folds)}
        for fut in as_completed(futures):
            weights[futures[fut]] = fut.result()
    return weights


def evaluate_fold(dataset, fold, weight):
    """Classify all held-out instances of one fold.

    Returns:
        dict variant name -> ConfusionCounts summed over the fold
    """
    cfg = dataset.cfg
    held = held_out_mask(cfg, fold)
    indices = held_out_indices(cfg, fold)
    n_workers = cfg.n_workers

    outcomes = []
    with ThreadPoolExecutor(max_workers=n_workers) as pool:
        jobs = pool.map(lambda i: evaluate_instance(int(i), fold, weight, dataset, held), indices)
        for testing, res in enumerate(jobs, 1):
            outcomes.append(res)
            if not cfg.quiet:
                print(f"\r\t\t\t\ttesting {testing}/{len(indices)} ({n_workers} workers)",
                      end="", flush=True)
    if not cfg.quiet:
        print("", flush=True)

    fold_counts = {name: ConfusionCounts() for name in cfg.variant_names()}
    for res in outcomes:
        for name, m in res.items():
            fold_counts[name].add(m)
    return fold_counts


def run_work_unit(path, cfg, use_processes=True):
    """Load one unit of work and run every fold on it.

    Returns:
        (results, weights): results maps variant name -> list of per-fold
        ConfusionCounts, weights is the list of per-fold weight arrays
    """
    print("\tattempting to read WF features...", flush=True)
    dataset = load_features(path, cfg)
    print(f"\tread {cfg.sites} sites with {cfg.instances} instances "
          f"(in total {cfg.n_monitored})", flush=True)
    print(f"\tread {cfg.open} sites for open world", flush=True)

    weights = learn_all_weights(dataset, cfg, use_processes=use_processes)
    print("\tdetermined global kNN-weights for all folds", flush=True)

    results = {name: [None] * cfg.folds for name in cfg.variant_names()}
    for fold in range(cfg.folds):
        print(f"\tstarting fold {fold + 1}/{cfg.folds}", flush=True)
        fold_counts = evaluate_fold(dataset, fold, weights[fold])
        for name, m in fold_counts.items():
            results[name][fold] = m

    return results, weights


def run_full_cv(datadir, cfg, out_dir=".", use_processes=True):
    """Evaluate every unit of work under datadir and write the reports.

    Returns:
        dict with works (names), results (per work) and weights (per work)
    """
    cfg.validate()
    units = work_unit_dirs(datadir)
    print(f"found {len(units)} folder(s) with work", flush=True)

    works, all_results, all_weights = [], [], []
    for name, path in units:
        print(f"starting with work {name}", flush=True)
        results, weights = run_work_unit(path, cfg, use_processes=use_processes)
        works.append(name)
        all_results.append(results)
        all_weights.append(weights)

    paths = write_reports(out_dir, cfg, works, all_results, all_weights)

    for attack in cfg.variant_names():
        print(f"{attack} attack", flush=True)
        for work, results in zip(works, all_results):
            summary = summarize(results[attack])
            print(f"  {work}: " + ", ".join(f"{k}={v:.3f}" for k, v in summary.items()),
                  flush=True)

    return {
        "works": works,
        "results": all_results,
        "weights": all_weights,
        "paths": paths,
    }

