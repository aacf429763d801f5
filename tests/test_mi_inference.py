"""Tests for per-TF MI network inference and CNA dampening."""

import numpy as np
import pandas as pd
import pytest

from mr_grn.cna_adjustment import CNAProfile, dampen_score, load_cna_profile
from mr_grn.errors import NotFoundError
from mr_grn.mi_inference import build_inputs, infer_tf_edges, main, tf_mi_scores
from mr_grn.utils.io import load_edges

from conftest import SAMPLES


class TestInferTFEdges:
    """Tests for the association estimator."""

    def test_scenario_selects_driven_target(self, scenario_inputs):
        edges = infer_tf_edges("TF1", scenario_inputs)
        assert edges.columns.tolist() == ["TF", "Target", "MI"]
        assert edges["Target"].tolist() == ["G1"]
        assert edges["TF"].tolist() == ["TF1"]
        assert edges["MI"].iloc[0] > 0.05
        assert edges["MI"].iloc[0] == pytest.approx(np.log(2))

    def test_no_self_loop(self, scenario_inputs):
        edges = infer_tf_edges("TF1", scenario_inputs)
        assert "TF1" not in set(edges["Target"])

    def test_self_score_is_entropy(self, scenario_inputs):
        scores = tf_mi_scores("TF1", scenario_inputs)
        assert scores["TF1"] == pytest.approx(np.log(2))
        assert (scores <= scores["TF1"] + 1e-12).all()

    def test_deterministic(self, random_expression):
        first = infer_tf_edges("TF_A", build_inputs(random_expression))
        second = infer_tf_edges("TF_A", build_inputs(random_expression.copy()))
        pd.testing.assert_frame_equal(first, second)

    def test_module_targets_recovered(self, random_expression):
        edges = infer_tf_edges("TF_A", build_inputs(random_expression))
        assert {f"G{i}" for i in range(2, 7)} <= set(edges["Target"])
        assert (edges["MI"] > 0.05).all()

    def test_threshold_is_strict(self, scenario_expression):
        g1_score = tf_mi_scores("TF1", build_inputs(scenario_expression))["G1"]
        inputs = build_inputs(scenario_expression, mi_threshold=float(g1_score))
        assert infer_tf_edges("TF1", inputs).empty

    def test_empty_result_is_valid(self, scenario_expression):
        # without G3, G2 is independent of every other gene after binning
        inputs = build_inputs(scenario_expression.drop(index="G3"))
        edges = infer_tf_edges("G2", inputs)
        assert edges.empty
        assert edges.columns.tolist() == ["TF", "Target", "MI"]

    def test_unknown_tf(self, scenario_inputs):
        with pytest.raises(NotFoundError, match="NOPE"):
            infer_tf_edges("NOPE", scenario_inputs)

    def test_inputs_are_read_only(self, scenario_inputs):
        with pytest.raises(ValueError):
            scenario_inputs.bins[0, 0] = 5


class TestCNADampening:
    """Tests for copy-number adjustment."""

    @pytest.mark.parametrize("r, expected", [
        (0.8, 0.2),
        (-0.8, 0.2),
        (0.5, 1.0),
        (0.3, 1.0),
        (None, 1.0),
        (float("nan"), 1.0),
    ])
    def test_dampen_score(self, r, expected):
        assert dampen_score(1.0, r) == pytest.approx(expected)

    def test_dampened_never_exceeds_original(self):
        rng = np.random.default_rng(3)
        for r in rng.uniform(-1, 1, size=200):
            score = rng.uniform(0, 2)
            damped = dampen_score(score, r)
            assert damped <= score
            if abs(r) <= 0.5:
                assert damped == score

    def test_correlated_cna_drops_edge(self, scenario_expression):
        cna = CNAProfile(pd.DataFrame(
            [[1, 2, 3, 4, 5, 6], [2, 4, 6, 8, 10, 12]],
            index=["TF1", "G1"], columns=SAMPLES, dtype=float,
        ))
        edges = infer_tf_edges("TF1", build_inputs(scenario_expression, cna=cna))
        assert edges.empty

    def test_moderate_correlation_keeps_dampened_edge(self, scenario_expression):
        tf_cna = np.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        g1_cna = np.array([1.0, 2.0, 4.0, 3.0, 6.0, 5.0])
        cna = CNAProfile(pd.DataFrame([tf_cna, g1_cna], index=["TF1", "G1"],
                                      columns=SAMPLES))
        r = cna.correlation("TF1", "G1")
        assert r == pytest.approx(15.5 / 17.5)

        edges = infer_tf_edges("TF1", build_inputs(scenario_expression, cna=cna))
        expected = dampen_score(np.log(2), r)
        assert edges["MI"].iloc[0] == pytest.approx(expected)
        assert edges["MI"].iloc[0] <= np.log(2)

    def test_missing_gene_disables_pair_only(self, scenario_expression):
        cna = CNAProfile(pd.DataFrame([[1, 2, 3, 4, 5, 6]], index=["TF1"],
                                      columns=SAMPLES, dtype=float))
        edges = infer_tf_edges("TF1", build_inputs(scenario_expression, cna=cna))
        assert edges["MI"].iloc[0] == pytest.approx(np.log(2))

    def test_constant_cna_disables_pair(self, scenario_expression):
        cna = CNAProfile(pd.DataFrame(
            [[2, 2, 2, 2, 2, 2], [1, 2, 3, 4, 5, 6]],
            index=["TF1", "G1"], columns=SAMPLES, dtype=float,
        ))
        assert cna.correlation("TF1", "G1") is None
        edges = infer_tf_edges("TF1", build_inputs(scenario_expression, cna=cna))
        assert edges["MI"].iloc[0] == pytest.approx(np.log(2))


class TestLoadCNAProfile:
    def test_absent_path(self):
        assert load_cna_profile(None) is None

    def test_missing_file(self, tmp_path):
        assert load_cna_profile(tmp_path / "nope.txt") is None

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "cna.txt"
        path.write_text("gene\tA\tB\nTF1\t1\t2\nTF1\t3\t4\n")
        assert load_cna_profile(path) is None

    def test_lenient_values(self, tmp_path):
        path = tmp_path / "cna.txt"
        path.write_text("gene\tA\tB\tC\nTF1\t1\tNA\t2\nG1\t0\t1\t-1\n")
        profile = load_cna_profile(path)
        assert len(profile) == 2
        assert "G1" in profile
        assert np.isnan(profile.get("TF1")[1])
        assert profile.get("MISSING") is None


class TestUnitCLI:
    """Tests for the per-TF dispatcher entry point."""

    def test_writes_partial(self, tmp_path, scenario_files):
        out = tmp_path / "mi"
        rc = main(["--tf", "TF1", "--expr", str(scenario_files["expr"]),
                   "--output-dir", str(out)])
        assert rc == 0
        edges = load_edges(out / "TF1_MI.txt")
        assert edges["Target"].tolist() == ["G1"]

    def test_unknown_tf_fails(self, tmp_path, scenario_files):
        out = tmp_path / "mi"
        rc = main(["--tf", "NOPE", "--expr", str(scenario_files["expr"]),
                   "--output-dir", str(out)])
        assert rc == 1
        assert not (out / "NOPE_MI.txt").exists()

    def test_missing_cna_is_not_an_error(self, tmp_path, scenario_files):
        out = tmp_path / "mi"
        rc = main(["--tf", "TF1", "--expr", str(scenario_files["expr"]),
                   "--cna", str(tmp_path / "absent.txt"), "--output-dir", str(out)])
        assert rc == 0

    def test_missing_expression_file_fails(self, tmp_path):
        out = tmp_path / "mi"
        rc = main(["--tf", "TF1", "--expr", str(tmp_path / "absent.txt"),
                   "--output-dir", str(out)])
        assert rc == 1
        assert not (out / "TF1_MI.txt").exists()
