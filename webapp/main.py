from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping
from urllib.parse import quote

from fastapi import FastAPI, Form, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from clinic_finance.config import load_config
from clinic_finance.core.models import ALL_CATEGORIES, EXPENSE_CATEGORIES, INCOME_CATEGORIES
from clinic_finance.session import Session
from clinic_finance.view import FilterState, chart_points, expense_by_category

app = FastAPI(title="ClinicaFinance")
templates = Jinja2Templates(directory=str(Path(__file__).with_name("templates")))
# Ids are opaque; escape "/" too so they stay one path segment.
templates.env.filters["path_segment"] = lambda value: quote(str(value), safe="")

app.state.session = None
app.state.analysis = None


def configure(config: Mapping[str, Any] | None = None, session: Session | None = None) -> Session:
    """Install the session used by every request; probing happens on first use."""
    app.state.session = session or Session.from_config(config or load_config())
    app.state.analysis = None
    return app.state.session


def _session() -> Session:
    session = app.state.session or configure()
    if not session.started:
        session.refresh()
    return session


def _redirect(message: str | None = None) -> RedirectResponse:
    target = f"/?message={quote(message)}" if message else "/"
    return RedirectResponse(target, status_code=303)


@app.get("/")
def index(
    request: Request,
    type: str | None = None,
    category: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    search: str | None = None,
    message: str | None = None,
):
    session = _session()
    filters = FilterState.from_params(
        {
            "type": type,
            "category": category,
            "start_date": start_date,
            "end_date": end_date,
            "search": search,
        }
    )
    transactions = session.transactions
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "mode": session.mode.value,
            "stats": session.stats(),
            "transactions": session.filtered(filters),
            "total_count": len(transactions),
            "filters": filters,
            "chart": chart_points(transactions),
            "expense_by_category": expense_by_category(transactions),
            "categories": ALL_CATEGORIES,
            "income_categories": INCOME_CATEGORIES,
            "expense_categories": EXPENSE_CATEGORIES,
            "analysis": app.state.analysis,
            "message": message,
        },
    )


@app.get("/api/summary")
def summary():
    session = _session()
    transactions = session.transactions
    return {
        "mode": session.mode.value,
        "stats": session.stats().to_dict(),
        "chart": chart_points(transactions),
        "expenseByCategory": expense_by_category(transactions),
    }


@app.post("/transactions")
def add_transaction(
    amount: str | None = Form(None),
    description: str | None = Form(None),
    type: str | None = Form(None),
    category: str | None = Form(None),
    date: str | None = Form(None),
):
    _session().create(
        {
            "amount": amount,
            "description": description,
            "type": type,
            "category": category,
            "date": date,
        }
    )
    return _redirect()


@app.post("/transactions/{tx_id:path}/delete")
def delete_transaction(tx_id: str):
    _session().delete(tx_id)
    return _redirect()


@app.post("/refresh")
def refresh():
    mode = _session().refresh()
    return _redirect(f"Modalità: {mode.value}")


@app.post("/insights")
def run_insights():
    analysis = _session().insights()
    if analysis is not None:
        app.state.analysis = analysis
    return _redirect()
