import pytest

from clinic_finance import config
from clinic_finance.remote import DEFAULT_API_URL


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CLINIC_FINANCE_API_URL", "CLINIC_FINANCE_CACHE_DIR", "PORT"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_file_missing(tmp_path):
    cfg = config.load_config(tmp_path / "missing.yaml")
    assert cfg["api_url"] == DEFAULT_API_URL
    assert cfg["store"] == {"host": "0.0.0.0", "port": 3000}
    assert cfg["dashboard"]["port"] == 8000


def test_file_values_merge_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("api_url: http://example/api/transactions\nstore:\n  port: 4000\n")
    cfg = config.load_config(path)
    assert cfg["api_url"] == "http://example/api/transactions"
    assert cfg["store"] == {"port": 4000, "host": "0.0.0.0"}
    assert cfg["cache_dir"] == "~/.clinic_finance"


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CLINIC_FINANCE_API_URL", "http://env/api/transactions")
    monkeypatch.setenv("CLINIC_FINANCE_CACHE_DIR", str(tmp_path))
    cfg = config.load_config(tmp_path / "missing.yaml")
    assert cfg["store"]["port"] == 8080
    assert cfg["api_url"] == "http://env/api/transactions"
    assert cfg["cache_dir"] == str(tmp_path)


def test_defaults_are_not_shared_between_loads(tmp_path, monkeypatch):
    monkeypatch.setenv("PORT", "9999")
    config.load_config(tmp_path / "missing.yaml")
    assert config.DEFAULT_CONFIG["store"]["port"] == 3000


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        config.load_config(path)
