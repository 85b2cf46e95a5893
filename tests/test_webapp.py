from datetime import date

import pytest
from fastapi.testclient import TestClient

from clinic_finance.ai import INSIGHTS_UNAVAILABLE
from clinic_finance.cache import LocalFallbackCache
from clinic_finance.core.models import Transaction, TransactionType
from clinic_finance.remote import RemoteStore
from clinic_finance.session import Session
from webapp import main


class DummyProvider:
    def generate(self, messages):
        return "Analisi completata"


@pytest.fixture
def remote_client(store_server, tmp_path):
    session = Session(RemoteStore(base_url=store_server.api_url), LocalFallbackCache(tmp_path / "c"), provider=DummyProvider())
    main.configure(session=session)
    with TestClient(main.app) as client:
        yield client
    main.app.state.session = None


@pytest.fixture
def local_client(tmp_path):
    session = Session(RemoteStore(base_url="http://127.0.0.1:9/api/transactions"), LocalFallbackCache(tmp_path / "c"))
    main.configure(session=session)
    with TestClient(main.app) as client:
        yield client
    main.app.state.session = None


def test_index_renders_stats_and_table(remote_client):
    res = remote_client.get("/")
    assert res.status_code == 200
    assert "Modalità: remote" in res.text
    assert "12500.00" in res.text
    assert "7500.00" in res.text
    assert "Affitto mensile studio" in res.text


def test_index_filters_table_but_not_totals(remote_client):
    res = remote_client.get("/", params={"type": "EXPENSE", "search": "aff", "start_date": ""})
    assert res.status_code == 200
    assert "Affitto mensile studio" in res.text
    assert "Rimborso Assicurazioni Convenzionate" not in res.text
    assert "12500.00" in res.text
    assert "1 di 2" in res.text


def test_create_and_delete_remote(remote_client, store_server):
    res = remote_client.post(
        "/transactions",
        data={"amount": "75", "description": "Visita cardiologica", "type": "INCOME", "category": "Visite Specialistiche", "date": "2024-04-01"},
        follow_redirects=False,
    )
    assert res.status_code == 303
    created = store_server.repository.list()[0]
    assert created["description"] == "Visita cardiologica"

    summary = remote_client.get("/api/summary").json()
    assert summary["stats"]["totalIncome"] == 12575.0

    res = remote_client.post(f"/transactions/{created['id']}/delete", follow_redirects=False)
    assert res.status_code == 303
    assert remote_client.get("/api/summary").json()["stats"]["totalIncome"] == 12500.0


def test_invalid_form_is_ignored(remote_client, store_server):
    before = store_server.repository.list()
    res = remote_client.post("/transactions", data={"amount": "", "description": "x"}, follow_redirects=False)
    assert res.status_code == 303
    assert store_server.repository.list() == before


def test_local_mode_summary_and_cache(local_client, tmp_path):
    summary = local_client.get("/api/summary").json()
    assert summary["mode"] == "local"
    assert summary["stats"] == {"totalIncome": 0, "totalExpense": 0, "balance": 0, "ratio": 100, "monthlyData": []}

    local_client.post("/transactions", data={"amount": "50", "description": "x", "type": "EXPENSE", "category": "Altro"})
    summary = local_client.get("/api/summary").json()
    assert summary["stats"]["totalExpense"] == 50.0
    assert summary["expenseByCategory"] == {"Altro": 50.0}
    assert (tmp_path / "c" / "clinica_transactions_fallback.json").exists()


def test_refresh_reports_mode(local_client):
    res = local_client.post("/refresh")
    assert res.status_code == 200
    assert "Modalità: local" in res.text


def test_insights_flow(remote_client):
    remote_client.post("/insights")
    res = remote_client.get("/")
    assert "Analisi completata" in res.text


def test_insights_disabled_when_empty(local_client):
    local_client.post("/insights")
    res = local_client.get("/")
    assert "disabled" in res.text
    assert 'id="analysis"' not in res.text
    assert INSIGHTS_UNAVAILABLE not in res.text


def test_delete_link_escapes_slashes_in_ids(tmp_path):
    cache = LocalFallbackCache(tmp_path / "c")
    cache.save([
        Transaction(id="a/b", date=date(2024, 3, 1), amount=10.0, description="slash", type=TransactionType.EXPENSE, category="Altro"),
        Transaction(id="a", date=date(2024, 3, 1), amount=5.0, description="plain", type=TransactionType.EXPENSE, category="Altro"),
    ])
    session = Session(RemoteStore(base_url="http://127.0.0.1:9/api/transactions"), cache)
    main.configure(session=session)
    try:
        with TestClient(main.app) as client:
            res = client.get("/")
            assert "/transactions/a%2Fb/delete" in res.text

            res = client.post("/transactions/a%2Fb/delete", follow_redirects=False)
            assert res.status_code == 303
    finally:
        main.app.state.session = None

    assert [tx.id for tx in cache.load()] == ["a"]
