"""
test_evaluation.py -- cross-validation harness, reports and command line

Tests:
  1. evaluate_instance yields one single-outcome count per k variant
  2. Per fold and variant, the counters sum to the number of test instances
  3. End to end on the synthetic 2x4+2 set: k=1 reaches accuracy 1.0 in every fold
  4. Fold weights are reproducible across process and thread pools
  5. run_full_cv writes the recall/precision tables, the log and the weights
  6. Command line: required counts, fold divisibility and the seed are checked up front
"""

import sys
import os

import pytest
import numpy as np
import polars as pl

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from scripts.wa_knn.config import ExperimentConfig
from scripts.wa_knn.evaluate_cv import (
    evaluate_instance,
    evaluate_fold,
    learn_all_weights,
    run_full_cv,
)
from scripts.wa_knn.folds import held_out_indices
from scripts.wa_knn.metrics import accuracy, fold_accuracy
from scripts.wa_knn.report import format_results
from scripts.wa_knn.run_all import build_parser, config_from_args, main
from scripts.wa_knn.weight_learning import learn_weights


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fold_weights(synthetic_dataset, synthetic_cfg):
    return learn_all_weights(synthetic_dataset, synthetic_cfg, use_processes=False)


# ===========================================================================
# Test 1: Single instance
# ===========================================================================

class TestEvaluateInstance:
    def test_one_outcome_per_variant(self, synthetic_dataset, synthetic_cfg):
        weight = np.ones(synthetic_cfg.feat_num)
        res = evaluate_instance(0, 0, weight, synthetic_dataset)
        assert sorted(res) == ["k1-wf", "k2-wf"]
        for m in res.values():
            assert m.total == 1

    def test_monitored_hit(self, synthetic_dataset, synthetic_cfg):
        weight = np.ones(synthetic_cfg.feat_num)
        res = evaluate_instance(5, 0, weight, synthetic_dataset)
        assert res["k1-wf"].tp == 1

    def test_open_hit(self, synthetic_dataset, synthetic_cfg):
        weight = np.ones(synthetic_cfg.feat_num)
        res = evaluate_instance(8, 0, weight, synthetic_dataset)
        assert res["k1-wf"].tn == 1
        assert res["k2-wf"].tn == 1


# ===========================================================================
# Test 2: Counter sums
# ===========================================================================

class TestFoldCounts:
    def test_counts_sum_to_test_instances(self, synthetic_dataset, synthetic_cfg, fold_weights):
        for fold in range(synthetic_cfg.folds):
            counts = evaluate_fold(synthetic_dataset, fold, fold_weights[fold])
            n_test = len(held_out_indices(synthetic_cfg, fold))
            assert n_test == synthetic_cfg.test_per_fold
            for name, m in counts.items():
                assert m.total == n_test, name

    def test_uniform_weights_noise_only(self, synthetic_dataset, synthetic_cfg):
        # with the discriminative feature switched off the counts still add up
        weight = np.ones(synthetic_cfg.feat_num)
        weight[0] = 0.0
        counts = evaluate_fold(synthetic_dataset, 1, weight)
        for m in counts.values():
            assert m.total == synthetic_cfg.test_per_fold


# ===========================================================================
# Test 3: End to end
# ===========================================================================

class TestEndToEnd:
    def test_k1_accuracy(self, synthetic_dataset, synthetic_cfg, fold_weights):
        per_fold = []
        for fold in range(synthetic_cfg.folds):
            counts = evaluate_fold(synthetic_dataset, fold, fold_weights[fold])
            assert fold_accuracy(counts["k1-wf"]) == 1.0
            per_fold.append(counts["k1-wf"])
        assert accuracy(per_fold) == 1.0

    def test_discriminative_feature_outweighs_noise(self, synthetic_dataset, synthetic_cfg):
        start = np.ones(synthetic_cfg.feat_num)
        for fold in range(synthetic_cfg.folds):
            w = learn_weights(synthetic_dataset, synthetic_cfg, fold, initial=start)
            assert w[0] > w[1:].mean()


# ===========================================================================
# Test 4: Reproducible weights
# ===========================================================================

class TestWeightPools:
    def test_process_pool_matches_threads(self, synthetic_dataset, synthetic_cfg, fold_weights):
        proc = learn_all_weights(synthetic_dataset, synthetic_cfg, use_processes=True)
        assert len(proc) == synthetic_cfg.folds
        for a, b in zip(proc, fold_weights):
            np.testing.assert_array_equal(a, b)


# ===========================================================================
# Test 5: Reports
# ===========================================================================

class TestRunFullCV:
    def test_outputs(self, synthetic_feature_dir, synthetic_cfg, tmp_path):
        out_dir = tmp_path / "out"
        res = run_full_cv(synthetic_feature_dir, synthetic_cfg, out_dir=out_dir,
                          use_processes=False)

        assert res["works"] == [str(synthetic_feature_dir)]
        assert len(res["weights"][0]) == synthetic_cfg.folds

        recall_csv = pl.read_csv(out_dir / "2x4+2-recall.csv")
        assert recall_csv.columns == ["work", "k1-wf", "k2-wf"]
        assert recall_csv.height == 1
        assert recall_csv["k1-wf"][0] == pytest.approx(1.0)

        precision_csv = pl.read_csv(out_dir / "2x4+2-precision.csv")
        assert precision_csv.columns == ["work", "k1-wf", "k2-wf"]

        weights = pl.read_csv(out_dir / "2x4+2.weights")
        assert weights.columns[:3] == ["work", "fold", "f1"]
        assert weights.width == 2 + synthetic_cfg.feat_num
        assert weights["fold"].to_list() == [0, 1]
        np.testing.assert_allclose(weights["f1"].to_numpy(),
                                   [w[0] for w in res["weights"][0]])

        log = (out_dir / "2x4+2.log").read_text()
        assert "k1-wf attack" in log
        assert "work,recall,precision,f1score,fpr,accuracy" in log
        assert "\ttp4,fpp0,fnp0,fn0,tn1" in log

    def test_subfolders_are_work_units(self, synthetic_feature_dir, synthetic_cfg, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        synthetic_feature_dir.rename(root / "b")
        (root / "a").symlink_to(root / "b", target_is_directory=True)

        res = run_full_cv(root, synthetic_cfg, out_dir=tmp_path / "out",
                          use_processes=False)
        assert res["works"] == ["a", "b"]
        table = pl.read_csv(tmp_path / "out" / "2x4+2-recall.csv")
        assert table["work"].to_list() == ["a", "b"]

    def test_format_without_verbose(self, synthetic_cfg):
        from scripts.wa_knn.metrics import ConfusionCounts

        results = [{"k1-wf": [ConfusionCounts(tp=1), ConfusionCounts(tn=1)]}]
        text = format_results(["w"], results, ["k1-wf"], verbose=False)["k1-wf"]
        assert text.splitlines() == [
            "work,recall,precision,f1score,fpr,accuracy",
            "w,0.500,0.500,0.500,0.000,1.000",
        ]

    def test_invalid_config_fails_before_reading(self, tmp_path):
        cfg = ExperimentConfig(sites=2, instances=3, open=2, folds=2)
        with pytest.raises(ValueError):
            run_full_cv(tmp_path / "does-not-exist", cfg, out_dir=tmp_path)


# ===========================================================================
# Test 6: Command line
# ===========================================================================

class TestCommandLine:
    def test_missing_counts(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--instances", "4", str(tmp_path)])

    def test_missing_datadir(self):
        with pytest.raises(SystemExit):
            main(["--sites", "2", "--instances", "4"])

    def test_folds_must_divide(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--sites", "2", "--instances", "5", "--folds", "2", str(tmp_path)])

    def test_args_to_config(self, tmp_path):
        args = build_parser().parse_args([
            "--sites", "3", "--instances", "10", "--open", "20", "--roffset", "5",
            "-r", "100", "--wkmin", "1", "--wkmax", "5", "--wkstep", "2",
            "-f", "2", "--folds", "5", "--no-verbose", "--quiet", "--seed", "9",
            str(tmp_path),
        ])
        cfg = config_from_args(args)
        assert cfg.sites == 3
        assert cfg.open == 20
        assert cfg.roffset == 5
        assert cfg.rounds == 100
        assert cfg.variant_names() == ["k1-wf", "k3-wf", "k5-wf"]
        assert cfg.worker_factor == 2
        assert cfg.verbose is False
        assert cfg.quiet is True
        assert cfg.seed == 9
        assert cfg.output_prefix == "3x10+20"
        cfg.validate()

    def test_negative_seed_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="seed"):
            ExperimentConfig(sites=2, instances=4, folds=2, seed=-1).validate()
        with pytest.raises(SystemExit):
            main(["--sites", "2", "--instances", "4", "--folds", "2",
                  "--seed", "-1", str(tmp_path)])

    def test_zero_seed_accepted(self):
        cfg = ExperimentConfig(sites=2, instances=4, folds=2, seed=0)
        assert cfg.validate() is cfg
