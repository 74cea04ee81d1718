"""Tests for the mixclust command line."""

import argparse
import json
import logging
import os
from unittest import mock

import pandas as pd
import pytest

from mixclust.cli.main import MixclustCLI, main


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run every command in an empty directory with no user config or env."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("mixclust.config.loader.USER_CONFIG_PATH", tmp_path / "user" / "config.toml")
    env = {k: v for k, v in os.environ.items() if not k.startswith("MIXCLUST_")}
    logger = logging.getLogger("mixclust")
    handlers, level = logger.handlers[:], logger.level
    with mock.patch.dict(os.environ, env, clear=True):
        yield
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def cli():
    """Create a CLI instance."""
    return MixclustCLI()


@pytest.fixture
def data_csv(tmp_path):
    """Three separated groups of four customers."""
    rows = ["id,spend,visits,tier"]
    for group, (spend, tier) in enumerate([(10, "bronze"), (500, "silver"), (990, "gold")]):
        for i in range(4):
            rows.append(f"g{group}-{i},{spend + i},{3 + group * 10 + i % 2},{tier}")
    path = tmp_path / "customers.csv"
    path.write_text("\n".join(rows) + "\n")
    return path


class TestParser:
    def test_cli_creation(self, cli):
        assert isinstance(cli.parser, argparse.ArgumentParser)

    def test_advise_arguments(self, cli):
        args = cli.parser.parse_args(["advise", "data.csv", "--max-k", "5", "--gap", "-B", "20", "--json"])
        assert args.command == "advise"
        assert args.max_k == 5
        assert args.gap is True
        assert args.references == 20
        assert args.json is True

    def test_cluster_arguments(self, cli):
        args = cli.parser.parse_args([
            "cluster", "data.csv", "-k", "3", "-o", "out.csv", "--seed", "7",
            "--workers", "2", "--id-column", "key", "--drop-missing", "-v",
            "--categorical", "zip", "--categorical", "tier", "--lambda", "0.5",
        ])
        assert args.clusters == 3
        assert str(args.output) == "out.csv"
        assert args.seed == 7
        assert args.workers == 2
        assert args.id_column == "key"
        assert args.drop_missing is True
        assert args.verbose is True
        assert args.categorical == ["zip", "tier"]
        assert args.balancing_weight == 0.5

    def test_no_command_prints_help(self, cli, capsys):
        assert cli.run([]) == 0
        assert "usage: mixclust" in capsys.readouterr().out


class TestAdviseCommand:
    """Tests for `mixclust advise`."""

    def test_text_output(self, cli, data_csv, capsys):
        assert cli.run(["advise", str(data_csv), "--max-k", "5"]) == 0
        out = capsys.readouterr().out
        assert "Cluster Count Advice" in out
        assert "Silhouette recommends k = 3" in out
        assert "Gap" not in out

    def test_json_output_with_gap(self, cli, data_csv, capsys):
        code = cli.run(["advise", str(data_csv), "--max-k", "4", "--gap", "-B", "3", "--json"])
        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["recommended_k"] == 3
        assert report["dispersion"]["k"] == [1, 2, 3, 4]
        assert report["gap"]["n_references"] == 3

    def test_missing_file(self, cli, tmp_path, capsys):
        assert cli.run(["advise", str(tmp_path / "absent.csv")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_override(self, cli, data_csv, capsys):
        assert cli.run(["advise", str(data_csv), "--max-k", "1"]) == 1
        assert "clustering.max_candidate_k" in capsys.readouterr().err


class TestClusterCommand:
    """Tests for `mixclust cluster`."""

    def test_text_output(self, cli, data_csv, capsys):
        assert cli.run(["cluster", str(data_csv), "-k", "3", "--restarts", "5"]) == 0
        out = capsys.readouterr().out
        assert "Configured k:         3" in out
        assert "Adjusted Rand index:  1.0000" in out
        assert "K-prototypes cluster profiles:" in out

    def test_advised_k(self, cli, data_csv, capsys):
        assert cli.run(["cluster", str(data_csv), "--max-k", "5", "--restarts", "5"]) == 0
        assert "Advised k:            3" in capsys.readouterr().out

    def test_writes_output(self, cli, data_csv, tmp_path, capsys):
        out_path = tmp_path / "results" / "clusters.csv"
        code = cli.run([
            "cluster", str(data_csv), "-k", "3", "--restarts", "4", "-o", str(out_path),
        ])
        assert code == 0
        frame = pd.read_csv(out_path)
        assert frame.columns.tolist() == ["id", "spend", "visits", "tier", "h_cluster", "k_cluster"]
        assert frame["h_cluster"].tolist() == [0] * 4 + [1] * 4 + [2] * 4
        assert frame["k_cluster"].tolist() == frame["h_cluster"].tolist()
        assert "Wrote clustered records" in capsys.readouterr().out

    def test_json_output(self, cli, data_csv, capsys):
        code = cli.run(["cluster", str(data_csv), "-k", "2", "--restarts", "3", "--json"])
        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["chosen_k"] == 2
        assert result["advice"] is None
        assert len(result["hierarchical"]["assignment"]["labels"]) == 12

    def test_deterministic_with_seed(self, cli, data_csv, capsys):
        args = ["cluster", str(data_csv), "-k", "4", "--restarts", "3", "--seed", "5", "--json"]
        cli.run(args)
        first = json.loads(capsys.readouterr().out)
        cli.run(args)
        second = json.loads(capsys.readouterr().out)
        assert first["kprototypes"]["assignment"] == second["kprototypes"]["assignment"]

    def test_k_too_large(self, cli, data_csv, capsys):
        assert cli.run(["cluster", str(data_csv), "-k", "20", "--restarts", "2"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_project_config_is_used(self, cli, data_csv, tmp_path, capsys):
        (tmp_path / "mixclust.toml").write_text("[clustering]\nchosen_k = 2\nrestarts = 3\n")
        assert cli.run(["cluster", str(data_csv), "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["chosen_k"] == 2


class TestConfigCommand:
    """Tests for `mixclust config`."""

    def test_show(self, cli, capsys):
        assert cli.run(["config", "show"]) == 0
        out = capsys.readouterr().out
        assert "[clustering]" in out
        assert "max_candidate_k = 10" in out
        assert "balancing_weight = (auto)" in out

    def test_show_json(self, cli, capsys):
        assert cli.run(["config", "show", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["clustering"]["restarts"] == 25
        assert data["data"]["id_column"] == "id"

    def test_show_explicit_file(self, cli, tmp_path, capsys):
        path = tmp_path / "custom.toml"
        path.write_text("[clustering]\nrestarts = 3\n")
        assert cli.run(["config", "show", "--json", "--config", str(path)]) == 0
        assert json.loads(capsys.readouterr().out)["clustering"]["restarts"] == 3

    def test_validate_ok(self, cli, capsys):
        assert cli.run(["config", "validate"]) == 0
        assert "Configuration is valid" in capsys.readouterr().out

    def test_validate_errors(self, cli, tmp_path, capsys):
        (tmp_path / "mixclust.toml").write_text("[clustering]\nrestarts = 0\n")
        assert cli.run(["config", "validate"]) == 1
        out = capsys.readouterr().out
        assert "Configuration has errors:" in out
        assert "clustering.restarts" in out

    def test_init(self, cli, tmp_path, capsys):
        assert cli.run(["config", "init"]) == 0
        assert (tmp_path / "mixclust.toml").exists()
        assert cli.run(["config", "init"]) == 1
        assert "already exists" in capsys.readouterr().err
        assert cli.run(["config", "init", "--force"]) == 0

    def test_init_global(self, cli, tmp_path):
        assert cli.run(["config", "init", "--global"]) == 0
        assert (tmp_path / "user" / "config.toml").exists()


class TestMain:
    def test_exit_code(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["config", "validate"])
        assert exc_info.value.code == 0

    def test_error_exit_code(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["advise", str(tmp_path / "absent.csv")])
        assert exc_info.value.code == 1
