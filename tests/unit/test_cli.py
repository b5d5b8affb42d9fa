"""Tests for the command-line interface."""

import json

import pytest

from azguard import cli
from azguard.cost.periods import utc_today
from azguard.storage.sqlite import SQLiteStorage

from conftest import SUBSCRIPTION_ID, make_record


@pytest.fixture
def run(tmp_path, monkeypatch):
    """Run the CLI against a temporary config dir and database."""
    for var in (
        "AZGUARD_PROFILE",
        "AZGUARD_AUTH_METHOD",
        "AZGUARD_STORAGE_PATH",
        "AZURE_SUBSCRIPTION_ID",
        "AZURE_TENANT_ID",
        "AZURE_CLIENT_ID",
        "AZURE_CLIENT_SECRET",
    ):
        monkeypatch.delenv(var, raising=False)
    db_path = tmp_path / "data.db"

    def _run(*args):
        return cli.main(["--config-dir", str(tmp_path), "--db", str(db_path), *args])

    _run.db_path = db_path
    return _run


class TestConfigCommands:
    """Tests for `azguard config`."""

    def test_set_and_get(self, run, capsys):
        assert run("config", "set", "azure.subscription_id", SUBSCRIPTION_ID) == 0
        assert run("config", "get", "azure.subscription_id") == 0
        assert capsys.readouterr().out.strip().endswith(SUBSCRIPTION_ID)

    def test_get_falls_back_to_config(self, run, capsys):
        assert run("config", "get", "analysis.average_months") == 0
        assert capsys.readouterr().out.strip() == "6"

    def test_set_invalid_value_is_rejected(self, run, capsys):
        assert run("config", "set", "azure.auth_method", "password") == 1
        assert "Error:" in capsys.readouterr().err
        # The bad value was not stored, so later runs still load
        assert run("config", "get", "azure.auth_method") == 0

    def test_list_masks_secrets(self, run, tmp_path, capsys):
        (tmp_path / "config.yaml").write_text("azure:\n  client_secret: hunter2\n")

        assert run("config", "list") == 0
        out = capsys.readouterr().out
        assert "hunter2" not in out
        assert "auth_method: cli" in out


class TestCostCommands:
    """Tests for `azguard cost` commands that read local storage."""

    @pytest.fixture(autouse=True)
    def seeded(self, run):
        with SQLiteStorage(run.db_path) as storage:
            storage.save_records(
                [
                    make_record("Virtual Machines", 50.0, "2024-03-05"),
                    make_record("Storage", 30.0, "2024-03-06"),
                ]
            )

    def test_summary_json(self, run, capsys):
        assert run("-o", "json", "cost", "summary", "--start", "2024-03-01", "--end", "2024-03-31") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["total_cost"] == 80.0
        assert set(data["by_service"]) == {"Virtual Machines", "Storage"}

    def test_summary_service_filter(self, run, capsys):
        assert run(
            "-o", "json", "cost", "summary", "--start", "2024-03-01", "--end", "2024-03-31",
            "--service", "Storage",
        ) == 0
        assert json.loads(capsys.readouterr().out)["by_service"] == {"Storage": 30.0}

    def test_records_csv(self, run, capsys):
        assert run("-o", "csv", "cost", "records") == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert lines[0] == "date,service,resource_group,cost,currency"
        assert len(lines) == 3

    def test_invalid_date(self, run):
        with pytest.raises(SystemExit):
            run("cost", "summary", "--start", "03/01/2024")

    def test_fetch_without_subscription(self, run, monkeypatch, capsys):
        """Test that a missing subscription is reported as an error exit."""
        monkeypatch.setattr(cli, "get_subscription_id_from_cli", lambda: "")
        assert run("cost", "fetch", "--start", "2024-03-01", "--end", "2024-03-31") == 1
        assert "subscription ID is not configured" in capsys.readouterr().err


class TestAlertCommands:
    """Tests for `azguard cost alert`."""

    def test_lifecycle(self, run, capsys):
        assert run("cost", "alert", "add", "monthly", "100") == 0
        assert run("cost", "alert", "disable", "monthly") == 0
        assert run("-o", "json", "cost", "alert", "list") == 0

        out = capsys.readouterr().out
        alerts = json.loads(out[out.index("["):])
        assert alerts[0]["name"] == "monthly"
        assert alerts[0]["enabled"] is False

        assert run("cost", "alert", "delete", "monthly") == 0
        assert run("cost", "alert", "delete", "monthly") == 0

    def test_add_rejects_zero_threshold(self, run, capsys):
        assert run("cost", "alert", "add", "free", "0") == 1
        assert "threshold" in capsys.readouterr().err

    def test_enable_unknown_alert(self, run):
        assert run("cost", "alert", "enable", "missing") == 1

    def test_check_passes_below_threshold(self, run, capsys):
        assert run("cost", "alert", "add", "tiny", "0.01") == 0
        # No records this month means a zero total, below any positive threshold
        assert run("cost", "alert", "check", "--fail-on-trigger") == 0
        assert "tiny: $0.00" in capsys.readouterr().out

    def test_add_rejects_empty_name(self, run, capsys):
        assert run("cost", "alert", "add", "", "10") == 1
        assert "Error:" in capsys.readouterr().err

    def test_check_fails_when_triggered(self, run, capsys):
        with SQLiteStorage(run.db_path) as storage:
            storage.save_records([make_record("Storage", 50.0, utc_today().isoformat())])

        assert run("cost", "alert", "add", "monthly", "40") == 0
        assert run("cost", "alert", "check") == 0
        assert run("cost", "alert", "check", "--fail-on-trigger") == 2
        assert "Budget alerts triggered!" in capsys.readouterr().out


class TestLocalCommandsWithoutCredentials:
    """Tests that local reads work with an incomplete auth configuration."""

    @pytest.fixture(autouse=True)
    def service_principal_without_secrets(self, run, monkeypatch):
        monkeypatch.setenv("AZGUARD_AUTH_METHOD", "service_principal")

    @pytest.mark.parametrize(
        "args",
        [
            ("cost", "summary"),
            ("cost", "history"),
            ("cost", "trend"),
            ("cost", "alert", "check"),
        ],
    )
    def test_local_reads_succeed(self, run, args):
        assert run(*args) == 0

    def test_alert_add_succeeds(self, run):
        assert run("cost", "alert", "add", "monthly", "100") == 0

    def test_fetch_reports_missing_credentials(self, run, capsys):
        assert run("config", "set", "azure.subscription_id", SUBSCRIPTION_ID) == 0
        assert run("cost", "fetch") == 1
        assert "service_principal auth requires" in capsys.readouterr().err


class TestCloudCommands:
    """Tests for `azguard cloud`."""

    def test_list_not_configured(self, run, capsys):
        assert run("cloud", "list") == 0
        assert "Azure: Not configured" in capsys.readouterr().out

    def test_list_configured(self, run, capsys):
        assert run("config", "set", "azure.subscription_id", SUBSCRIPTION_ID) == 0
        capsys.readouterr()

        assert run("-o", "json", "cloud", "list") == 0
        providers = json.loads(capsys.readouterr().out)
        assert providers == [
            {
                "provider": "Azure",
                "configured": True,
                "account": SUBSCRIPTION_ID,
                "auth_method": "cli",
            }
        ]
