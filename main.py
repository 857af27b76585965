import logging
from datetime import date
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from categories import get_categories
from config import get_settings
from csv_utils import generate_filename
from database import SessionLocal, init_db
from models import BreakdownType, PeriodKind, SortField, SortOrder, TransactionType
from periods import FutureDate, InvalidDate, InvalidPeriodKind, TimePeriod, local_today
from schemas import (
    BalanceTrendData,
    CategoryBreakdown,
    DashboardSummary,
    Transaction,
    TransactionIn,
    TransactionUpdate,
)
from services import (
    CSVService,
    MetricsService,
    TransactionFilters,
    TransactionNotFound,
    TransactionService,
    apply_filters,
)

logging.basicConfig(level=get_settings().log_level)

app = FastAPI(title="Pocket Ledger")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_metrics_cache: dict[tuple, Any] = {}


def get_metrics_cache() -> dict[tuple, Any]:
    return _metrics_cache


@app.on_event("startup")
def startup_event():
    init_db()


def period_from_request(
    request: Request, default_kind: PeriodKind = PeriodKind.month
) -> TimePeriod:
    kind = request.query_params.get("period") or default_kind.value
    anchor = request.query_params.get("anchor") or local_today().isoformat()
    return TimePeriod(kind=kind, anchor_date=anchor)


def _bad_request(exc: ValueError) -> HTTPException:
    logging.info(f"api_rejected: error={type(exc).__name__} detail={exc}")
    return HTTPException(status_code=400, detail=str(exc))


def _parse_optional_date(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {name} date") from exc


def filters_from_request(request: Request) -> TransactionFilters:
    params = request.query_params
    txn_type = None
    if params.get("type"):
        try:
            txn_type = TransactionType(params["type"])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid transaction type") from exc
    sort_by = None
    if params.get("sort"):
        try:
            sort_by = SortField(params["sort"])
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid sort field") from exc
    try:
        sort_order = SortOrder(params.get("order") or SortOrder.desc.value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid sort order") from exc
    return TransactionFilters(
        query=params.get("q"),
        type=txn_type,
        category_id=params.get("category") or None,
        start=_parse_optional_date(params.get("start"), "start"),
        end=_parse_optional_date(params.get("end"), "end"),
        sort_by=sort_by,
        sort_order=sort_order,
    )


@app.get("/api/dashboard", response_model=DashboardSummary)
def api_dashboard(
    request: Request,
    db: Session = Depends(get_db),
    cache: dict = Depends(get_metrics_cache),
):
    period = period_from_request(request, PeriodKind.month)
    try:
        return MetricsService(db, cache=cache).dashboard(period)
    except (InvalidPeriodKind, InvalidDate, FutureDate) as exc:
        raise _bad_request(exc) from exc


@app.get("/api/trends", response_model=BalanceTrendData)
def api_trends(
    request: Request,
    db: Session = Depends(get_db),
    cache: dict = Depends(get_metrics_cache),
):
    period = period_from_request(request, PeriodKind.day)
    try:
        return MetricsService(db, cache=cache).balance_trend(period)
    except (InvalidPeriodKind, InvalidDate, FutureDate) as exc:
        raise _bad_request(exc) from exc


@app.get("/api/category-breakdown", response_model=list[CategoryBreakdown])
def api_category_breakdown(request: Request, db: Session = Depends(get_db)):
    period = period_from_request(request, PeriodKind.month)
    breakdown_type = request.query_params.get("type") or BreakdownType.expense.value
    try:
        return MetricsService(db).category_breakdown(period, breakdown_type)
    except ValueError as exc:
        raise _bad_request(exc) from exc


@app.get("/api/categories")
def api_categories(request: Request):
    category_type = request.query_params.get("type") or BreakdownType.all.value
    return [
        {
            "id": cat.id,
            "name": cat.name,
            "type": cat.type.value,
            "icon": cat.icon,
            "is_default": cat.is_default,
        }
        for cat in get_categories(category_type)
    ]


@app.get("/api/transactions", response_model=list[Transaction])
def api_transactions(request: Request, db: Session = Depends(get_db)):
    filters = filters_from_request(request)
    return apply_filters(TransactionService(db).list_all(), filters)


@app.post("/api/transactions", response_model=Transaction, status_code=201)
def api_create_transaction(
    payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)
):
    try:
        data = TransactionIn(**payload)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return TransactionService(db).create(data)


@app.get("/api/transactions/{transaction_id}", response_model=Transaction)
def api_get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        return TransactionService(db).get(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.put("/api/transactions/{transaction_id}", response_model=Transaction)
def api_update_transaction(
    transaction_id: str,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    service = TransactionService(db)
    try:
        data = TransactionUpdate(**payload)
        return service.update(transaction_id, data)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(transaction_id: str, db: Session = Depends(get_db)):
    try:
        TransactionService(db).delete(transaction_id)
    except TransactionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@app.get("/export.csv")
def export_csv(request: Request, db: Session = Depends(get_db)):
    filters = filters_from_request(request)
    content = CSVService(db).export(filters)
    filename = generate_filename()
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
