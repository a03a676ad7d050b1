"""
Tests for the registry command-line interface.

Each test runs against a ledger file in a temporary directory, so every
invocation exercises load, operate and save.
"""

import json

import pytest

from conftest import ADMIN, ALICE, BOB
from registry.cli import EXIT_REJECTED, OutputFormat, format_output, main


@pytest.fixture
def cli(tmp_path, monkeypatch, capsys):
    """Run the CLI against a temp ledger; returns (exit_code, stdout, stderr)."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("REGISTRY_ADMIN", ADMIN)
    state = tmp_path / "ledger.json"

    def run(*argv):
        code = main(["--state", str(state), *argv])
        out, err = capsys.readouterr()
        return code, out, err

    run.state = state
    return run


def _json(out):
    return json.loads(out)


class TestCLIOperations:

    def test_create_persists(self, cli):
        code, out, _ = cli("create", "5", "--caller", ADMIN)

        assert code == 0
        assert _json(out)["asset_id"] == 1
        assert json.loads(cli.state.read_text())["counter"] == 1

    def test_mint_skips_invalid(self, cli):
        code, out, _ = cli("mint", "5", "0", "7", "--caller", ADMIN)

        assert code == 0
        assert _json(out) == {"ids": [1, 2], "requested": 3, "minted": 2}

    def test_transfer_and_show(self, cli):
        cli("create", "5", "--caller", ADMIN)

        code, _, _ = cli("transfer", "1", "--from", ADMIN, "--to", ALICE, "--caller", ALICE)
        assert code == 0

        _, out, _ = cli("show", "1")
        assert _json(out)["owner"] == ALICE

    def test_lifecycle_round_trip(self, cli):
        cli("create", "5", "--caller", ADMIN)

        _, out, _ = cli("deactivate", "1", "--caller", ADMIN)
        assert _json(out) == {"asset_id": 1, "state": "deactivated"}

        _, out, _ = cli("restore", "1", "--caller", ADMIN)
        assert _json(out)["state"] == "active"

    def test_combine(self, cli):
        cli("mint", "3", "4", "--caller", ADMIN)

        code, out, _ = cli("combine", "1", "2", "--caller", BOB)

        assert code == 0
        assert _json(out) == {"target": 2, "value": 7, "source_exists": False}

    def test_notes(self, cli):
        cli("create", "5", "--caller", ADMIN)

        cli("note", "add", "1", "hello", "--caller", ADMIN)
        _, out, _ = cli("show", "1")
        assert _json(out)["notes"] == "hello"

        _, out, _ = cli("note", "dormant", "1", "--caller", ADMIN)
        assert _json(out)["dormant"] is True

    def test_range_and_stats(self, cli):
        cli("mint", "1", "2", "3", "--caller", ADMIN)

        _, out, _ = cli("range", "1", "3")
        assert [a["value"] for a in _json(out)["assets"]] == [1, 2, 3]

        _, out, _ = cli("stats")
        assert _json(out) == {"total_created": 3, "existing": 3, "admin": ADMIN}

    def test_table_format(self, cli):
        cli("mint", "1", "2", "--caller", ADMIN)
        code, out, _ = cli("--format", "table", "list")
        assert code == 0
        assert out.splitlines()[0].startswith("asset_id")


class TestCLIErrors:

    def test_registry_rejection_exit_code(self, cli):
        cli("create", "5", "--caller", ADMIN)
        cli("deactivate", "1", "--caller", ADMIN)

        code, _, err = cli("deactivate", "1", "--caller", ADMIN)

        assert code == EXIT_REJECTED
        assert "Error [204]" in err

    def test_non_admin_create(self, cli):
        code, _, err = cli("create", "5", "--caller", ALICE)
        assert code == 2
        assert "Error [200]" in err
        assert not cli.state.exists()

    def test_missing_asset(self, cli):
        code, _, err = cli("show", "3")
        assert code == 2
        assert "Error [201]" in err

    def test_quiet_suppresses_message(self, cli):
        code, _, err = cli("--quiet", "show", "3")
        assert code == 2
        assert "Error [" not in err

    def test_admin_not_configured(self, cli, monkeypatch):
        monkeypatch.delenv("REGISTRY_ADMIN")
        code, _, err = cli("create", "5", "--caller", ADMIN)
        assert code == 1
        assert "administrator" in err

    @pytest.mark.parametrize("argv", [("show", "1"), ("range", "1", "2"), ("list",), ("stats",)])
    def test_queries_run_without_admin(self, cli, monkeypatch, argv):
        cli("mint", "5", "7", "--caller", ADMIN)
        monkeypatch.delenv("REGISTRY_ADMIN")

        code, out, err = cli(*argv)

        assert code == 0
        assert "administrator" not in err
        if argv == ("stats",):
            assert _json(out)["admin"] is None

    def test_corrupt_ledger(self, cli):
        cli.state.write_text('{"version": 1}', encoding="utf-8")
        code, _, _ = cli("stats")
        assert code == 1

    def test_note_requires_subcommand(self, cli):
        code, _, _ = cli("note")
        assert code == 1

    def test_config_file_error(self, cli, tmp_path):
        code, _, _ = cli("--config", str(tmp_path / "missing.yaml"), "stats")
        assert code == 1


class TestCLIConfig:

    def test_config_get(self, cli):
        code, out, _ = cli("config", "get", "limits.max_batch_size")
        assert code == 0
        assert _json(out) == {"path": "limits.max_batch_size", "value": 100}

    def test_config_file_applies(self, cli, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("limits:\n  max_batch_size: 2\n", encoding="utf-8")

        code, _, err = cli("--config", str(path), "mint", "1", "2", "3", "--caller", ADMIN)

        assert code == 2
        assert "Error [202]" in err

    def test_config_validate(self, cli):
        _, out, _ = cli("config", "validate")
        assert _json(out) == {"valid": True, "errors": []}

    def test_no_command_prints_help(self, cli):
        code, out, _ = cli()
        assert code == 0
        assert "usage" in out.lower()


class TestFormatOutput:

    def test_yaml(self):
        assert format_output({"a": 1}, OutputFormat.YAML).strip() == "a: 1"

    def test_text(self):
        assert format_output([1, 2], OutputFormat.TEXT) == "[1, 2]"

    def test_table_from_dict(self):
        assert format_output({"a": 1, "b": 2}, OutputFormat.TABLE) == "a: 1\nb: 2"
