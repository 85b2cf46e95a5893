import json

import pytest
from click.testing import CliRunner

from clinic_finance.cli import main as cli

DEAD_URL = "http://127.0.0.1:9/api/transactions"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("CLINIC_FINANCE_API_URL", "CLINIC_FINANCE_CACHE_DIR", "PORT", "API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)


def _invoke(*args):
    runner = CliRunner()
    return runner.invoke(cli, list(args))


def test_list_against_remote_store(store_server, tmp_path):
    res = _invoke("--api-url", store_server.api_url, "--cache-dir", str(tmp_path / "c"), "list")
    assert res.exit_code == 0, res.output
    assert "Mode: remote" in res.output
    assert "Affitto mensile studio" in res.output
    assert "2 of 2 transaction(s)." in res.output


def test_list_with_filters(store_server, tmp_path):
    res = _invoke(
        "--api-url", store_server.api_url, "--cache-dir", str(tmp_path / "c"),
        "list", "--type", "expense", "--search", "aff",
    )
    assert res.exit_code == 0, res.output
    assert "Affitto mensile studio" in res.output
    assert "Rimborso" not in res.output
    assert "1 of 2 transaction(s)." in res.output


def test_add_and_delete_in_local_mode(tmp_path):
    cache_dir = tmp_path / "c"
    base = ["--api-url", DEAD_URL, "--cache-dir", str(cache_dir)]

    res = _invoke(*base, "add", "--amount", "50", "--description", "x", "--type", "EXPENSE", "--category", "Altro")
    assert res.exit_code == 0, res.output
    assert "Mode: local" in res.output
    stored = json.loads((cache_dir / "clinica_transactions_fallback.json").read_text())
    assert len(stored) == 1
    assert stored[0]["amount"] == 50.0
    assert stored[0]["type"] == "EXPENSE"

    res = _invoke(*base, "delete", stored[0]["id"])
    assert res.exit_code == 0, res.output
    assert f"Deleted {stored[0]['id']}." in res.output
    assert json.loads((cache_dir / "clinica_transactions_fallback.json").read_text()) == []


def test_add_invalid_submission_saves_nothing(tmp_path):
    res = _invoke("--api-url", DEAD_URL, "--cache-dir", str(tmp_path / "c"), "add", "--amount", "0", "--description", "x")
    assert res.exit_code == 1
    assert "Nothing saved." in res.output
    assert not (tmp_path / "c" / "clinica_transactions_fallback.json").exists()


def test_delete_unknown_id(tmp_path):
    res = _invoke("--api-url", DEAD_URL, "--cache-dir", str(tmp_path / "c"), "delete", "42")
    assert res.exit_code == 0
    assert "No transaction with id 42." in res.output


def test_stats(store_server, tmp_path):
    res = _invoke("--api-url", store_server.api_url, "--cache-dir", str(tmp_path / "c"), "stats")
    assert res.exit_code == 0, res.output
    assert "Income:      12500.00" in res.output
    assert "Expense:      5000.00" in res.output
    assert "Balance:      7500.00" in res.output
    assert "Affitto e Struttura" in res.output


def test_categories():
    res = _invoke("categories")
    assert res.exit_code == 0
    assert "Visite Specialistiche" in res.output
    assert "Manutenzione Apparati" in res.output


def test_insights_disabled_for_empty_collection(tmp_path):
    res = _invoke("--api-url", DEAD_URL, "--cache-dir", str(tmp_path / "c"), "insights")
    assert res.exit_code == 0
    assert "No transactions to analyze." in res.output


def test_insights_without_credential_prints_placeholder(store_server, tmp_path):
    from clinic_finance.ai import INSIGHTS_UNAVAILABLE

    res = _invoke("--api-url", store_server.api_url, "--cache-dir", str(tmp_path / "c"), "insights")
    assert res.exit_code == 0, res.output
    assert INSIGHTS_UNAVAILABLE in res.output


def test_config_file_and_env_file(store_server, tmp_path, monkeypatch):
    monkeypatch.setenv("CLINIC_FINANCE_LOG_LEVEL", "INFO")
    cfg = tmp_path / "settings.yaml"
    cfg.write_text(f"api_url: {store_server.api_url}\ncache_dir: {tmp_path / 'c'}\n")
    env = tmp_path / "custom.env"
    env.write_text("CLINIC_FINANCE_LOG_LEVEL=WARNING\n")
    res = _invoke("--config", str(cfg), "--env-file", str(env), "list")
    assert res.exit_code == 0, res.output
    assert "Mode: remote" in res.output


def test_remote_delete_of_id_missing_locally_is_sent_to_store(store_server, tmp_path):
    res = _invoke("--api-url", store_server.api_url, "--cache-dir", str(tmp_path / "c"), "delete", "999")
    assert res.exit_code == 0, res.output
    assert "Store accepted delete of 999." in res.output
    assert [r["id"] for r in store_server.repository.list()] == ["1", "2"]
