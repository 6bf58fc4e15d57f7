"""
Unit tests for the command-line interface.

Database access is replaced by the in-memory stand-ins from conftest.
"""

import json
from types import SimpleNamespace

import pytest

from durloader.batch import LoadCoordinator
from durloader.batch.writers import ColumnarBulkWriter
from durloader.cli import load_cli
from durloader.config.settings import BulkLoadSettings


@pytest.fixture
def missing_env(tmp_path):
    return str(tmp_path / "missing.env")


@pytest.fixture
def fake_database(monkeypatch, fake_manager_factory, fake_bulk_writer, fake_store):
    """
    Route the CLI's ConnectionManager and LoadCoordinator to fakes

    Returns the FakeBulkWriter the coordinator writes through.
    """
    manager, _, _ = fake_manager_factory()
    bulk = fake_bulk_writer()

    def coordinator_from_settings(settings, connection_manager=None, logger=None):
        return LoadCoordinator(
            manager,
            writer=ColumnarBulkWriter(manager, bulk),
            store=fake_store(),
            csv_settings=settings.csv,
            bulk_settings=BulkLoadSettings(batch_size=settings.bulk_load.batch_size, verify_after_load=False),
        )

    monkeypatch.setattr(load_cli, "ConnectionManager", SimpleNamespace(from_settings=lambda settings, **kw: manager))
    monkeypatch.setattr(LoadCoordinator, "from_settings", coordinator_from_settings)
    return bulk


@pytest.fixture
def dur_file(tmp_path, dur_csv):
    path = tmp_path / "dur.csv"
    path.write_text(dur_csv([("M1", "Q1", 2024), ("M2", "Q5", 2024), ("M3", "Q1", 2024)]), encoding="utf-8")
    return path


class TestParser:
    """Tests for argument parsing"""

    def test_no_command(self, capsys):
        """Test running without a command prints help and fails"""
        assert load_cli.main([]) == load_cli.EXIT_ABORTED
        assert "usage" in capsys.readouterr().out

    def test_load_options(self):
        """Test load options parse"""
        args = load_cli.build_parser().parse_args(
            ["load", "--input", "x.csv", "--batch-size", "500", "--workers", "2", "--no-verify", "--json",
             "--metrics-port", "9109"]
        )

        assert args.command == "load"
        assert args.batch_size == 500
        assert args.workers == 2
        assert args.no_verify
        assert args.json
        assert args.metrics_port == 9109

    def test_build_settings_overrides(self, missing_env):
        """Test CLI flags override loaded settings"""
        args = load_cli.build_parser().parse_args(
            ["load", "--input", "x.csv", "--batch-size", "250", "--workers", "3", "--no-validate",
             "--env-file", missing_env, "--log-level", "DEBUG"]
        )

        settings = load_cli.build_settings(args)

        assert settings.bulk_load.batch_size == 250
        assert settings.bulk_load.max_workers == 3
        assert settings.bulk_load.validate_data is False
        assert settings.logging.level == "DEBUG"


class TestLoadCommand:
    """Tests for durloader load"""

    def test_load_reports(self, fake_database, dur_file, missing_env, capsys):
        """Test a load prints the report and succeeds despite rejections"""
        code = load_cli.main(["load", "--input", str(dur_file), "--batch-tag", "CLI_RUN", "--env-file", missing_env])

        out = capsys.readouterr().out
        assert code == load_cli.EXIT_OK
        assert "LOAD COMPLETE" in out
        assert "line 2: invalid quarter" in out
        assert fake_database.batch_sizes == [2]

    def test_load_json(self, fake_database, dur_file, missing_env, capsys):
        """Test --json prints the report dictionary"""
        load_cli.main(["load", "--input", str(dur_file), "--json", "--env-file", missing_env])

        data = json.loads(capsys.readouterr().out)
        assert data["total_read"] == 3
        assert data["rejected"] == 1
        assert data["rows_inserted"] == 2

    def test_fail_on_rejections(self, fake_database, dur_file, missing_env):
        """Test --fail-on-rejections turns rejections into exit status 1"""
        code = load_cli.main(
            ["load", "--input", str(dur_file), "--fail-on-rejections", "--env-file", missing_env]
        )
        assert code == load_cli.EXIT_FAILURES

    def test_missing_input(self, tmp_path, missing_env, capsys):
        """Test a missing input file is an error before any connection"""
        code = load_cli.main(["load", "--input", str(tmp_path / "nope.csv"), "--env-file", missing_env])

        assert code == load_cli.EXIT_ABORTED
        assert "does not exist" in capsys.readouterr().err

    def test_invalid_batch_size(self, dur_file, missing_env):
        """Test a zero batch size is rejected"""
        code = load_cli.main(["load", "--input", str(dur_file), "--batch-size", "0", "--env-file", missing_env])
        assert code == load_cli.EXIT_ABORTED


class TestOtherCommands:
    """Tests for inspect, health and generate-sample"""

    def test_inspect(self, dur_file, missing_env, capsys):
        """Test inspect shows the header mapping"""
        code = load_cli.main(["inspect", "--input", str(dur_file), "--json", "--env-file", missing_env])

        data = json.loads(capsys.readouterr().out)
        assert code == load_cli.EXIT_OK
        assert data["estimated_records"] == 3
        assert data["mapping"]["memberId"] == "MemberId"
        assert data["unrecognized"] == []

    def test_inspect_unknown_header(self, tmp_path, missing_env, capsys):
        """Test inspect fails for a header matching nothing"""
        path = tmp_path / "bad.csv"
        path.write_text("foo,bar\n1,2\n")

        code = load_cli.main(["inspect", "--input", str(path), "--env-file", missing_env])

        assert code == load_cli.EXIT_ABORTED
        assert "mapping_error" in capsys.readouterr().out

    def test_health(self, fake_database, missing_env, capsys):
        """Test health prints the probe result"""
        code = load_cli.main(["health", "--env-file", missing_env])

        data = json.loads(capsys.readouterr().out)
        assert code == load_cli.EXIT_OK
        assert data["healthy"] is True

    def test_generate_sample(self, tmp_path, capsys):
        """Test generate-sample writes the requested rows"""
        path = tmp_path / "sample.csv"

        code = load_cli.main(
            ["generate-sample", "--output", str(path), "--count", "12", "--quarter", "Q3", "--year", "2024", "--seed", "5"]
        )

        assert code == load_cli.EXIT_OK
        assert path.exists()
        assert len(path.read_text().splitlines()) == 13
        assert "Wrote 12 sample rows" in capsys.readouterr().out
