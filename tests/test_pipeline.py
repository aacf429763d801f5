"""End-to-end tests for the post-processing CLI."""

import math

import pandas as pd
import pytest
import yaml

from mr_grn.pipeline import main, output_paths, resolve_background, run_post_processing
from mr_grn.utils.io import load_edges

from conftest import write_list, write_matrix


@pytest.fixture
def two_tf_files(tmp_path, random_expression):
    return {
        "expr": write_matrix(random_expression.copy(), tmp_path / "expression_matrix.txt"),
        "tfs": write_list(["TF_B", "TF_A", "NOT_EXPRESSED"], tmp_path / "TF_list.txt"),
        "reference": write_list(["G2", "G3", "G20"], tmp_path / "gwas_loci.txt"),
    }


def common_args(files, out):
    return [
        "--expr", str(files["expr"]),
        "--tf-list", str(files["tfs"]),
        "--reference", str(files["reference"]),
        "--output-dir", str(out),
    ]


class TestCLI:
    def test_infer_then_all(self, tmp_path, scenario_files):
        out = tmp_path / "results"
        assert main(["infer", *common_args(scenario_files, out)]) == 0
        assert (out / "mi" / "TF1_MI.txt").exists()

        assert main(["all", *common_args(scenario_files, out)]) == 0
        paths = output_paths(out)
        edges = load_edges(paths["edges"])
        assert edges[["TF", "Target"]].values.tolist() == [["TF1", "G1"]]

        vse = pd.read_csv(paths["vse"], sep="\t")
        assert vse.columns.tolist() == ["OddsRatio", "P.Value"]
        assert len(vse) == 1

        ranking = pd.read_csv(paths["ranking"], sep="\t")
        assert ranking.columns.tolist() == ["TF", "count", "mean_MI", "GWAS_ovlp", "Score"]
        assert ranking.loc[0, "Score"] == pytest.approx(1 * math.log(2) + 1)
        assert paths["regulons"].exists()

    def test_merge_before_units_finish(self, tmp_path, scenario_files):
        out = tmp_path / "results"
        assert main(["all", *common_args(scenario_files, out)]) == 1
        assert not any(p.exists() for p in output_paths(out).values())

    def test_separate_steps(self, tmp_path, two_tf_files):
        out = tmp_path / "results"
        args = common_args(two_tf_files, out)
        assert main(["infer", *args]) == 0
        assert main(["merge", *args]) == 0
        assert main(["enrich", *args, "--background", "expression"]) == 0
        assert main(["rank", *args]) == 0

        paths = output_paths(out)
        edges = load_edges(paths["edges"])
        # TFs are merged in lexicographic order
        assert edges["TF"].drop_duplicates().tolist() == sorted(set(edges["TF"]))
        ranking = pd.read_csv(paths["ranking"], sep="\t")
        assert ranking.loc[0, "TF"] == "TF_A"

    def test_config_file(self, tmp_path, scenario_files):
        out = tmp_path / "results"
        config = tmp_path / "config.yaml"
        config.write_text(yaml.safe_dump({
            "paths": {
                "expression_matrix": str(scenario_files["expr"]),
                "tf_list": str(scenario_files["tfs"]),
                "reference_genes": str(scenario_files["reference"]),
                "output_dir": str(out),
            },
            "mi_inference": {"mi_threshold": 0.05, "n_workers": 1},
            "output": {"prefix": "run1"},
        }))
        assert main(["infer", "--config", str(config)]) == 0
        assert main(["all", "--config", str(config)]) == 0
        assert output_paths(out, "run1")["ranking"].exists()

    def test_plot(self, tmp_path, scenario_files):
        out = tmp_path / "results"
        assert main(["infer", *common_args(scenario_files, out)]) == 0
        assert main(["all", *common_args(scenario_files, out), "--plot"]) == 0
        assert (out / "network_MR_ranking.png").exists()
        assert (out / "network_MI_distribution.png").exists()
        assert (out / "network_MI_distribution.svg").exists()

    def test_rank_logs_top_regulators(self, tmp_path, scenario_files, caplog):
        out = tmp_path / "results"
        assert main(["infer", *common_args(scenario_files, out)]) == 0
        assert main(["merge", *common_args(scenario_files, out)]) == 0
        with caplog.at_level("INFO", logger="mr_grn.pipeline"):
            assert main(["rank", *common_args(scenario_files, out)]) == 0
        assert "Top regulators: TF1" in caplog.text


class TestRunPostProcessing:
    def test_returns_all_tables(self, tmp_path, scenario_files):
        assert main(["infer", *common_args(scenario_files, tmp_path)]) == 0
        tables = run_post_processing(["TF1"], tmp_path / "mi",
                                     scenario_files["reference"], tmp_path)
        assert set(tables) == {"edges", "vse", "regulons", "ranking"}


class TestResolveBackground:
    def test_union(self):
        assert resolve_background("union") is None

    def test_expression(self, scenario_files):
        assert resolve_background("expression", scenario_files["expr"]) == {
            "TF1", "G1", "G2", "G3"
        }

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown background"):
            resolve_background("genome")
