import logging
import tomllib
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from database import get_db, init_db
from models import BudgetCategory, Category, TransactionType
from periods import local_today, resolve_month
from schemas import (
    INVALID_CATEGORY_MESSAGE,
    INVALID_TYPE_MESSAGE,
    BudgetIn,
    BudgetUpdate,
    SeedIn,
    TransactionIn,
    TransactionUpdate,
)
from seed import seed_transactions
from services import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    BudgetService,
    NotFoundError,
    PageRequest,
    ReportService,
    TransactionFilters,
    TransactionService,
)

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Personal Finance Tracker")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


def _load_app_version() -> str:
    try:
        with open("pyproject.toml", "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"
    return str(data.get("project", {}).get("version", "unknown"))


APP_VERSION = _load_app_version()

ENDPOINTS = {
    "GET /": "API documentation and overview",
    "GET /health": "Server health check",
    "GET /api/status": "API operational status",
    "GET /api/transactions": "Get all transactions with financial insights",
    "GET /api/transactions/dashboard": "Get dashboard summary with charts",
    "GET /api/transactions/charts/monthly-expenses": "Get monthly expenses chart data",
    "GET /api/transactions/charts/category-pie": "Get category pie chart data",
    "POST /api/transactions": "Create new transaction",
    "PUT /api/transactions/:id": "Update transaction",
    "DELETE /api/transactions/:id": "Delete transaction",
    "GET /api/budgets": "Get all budgets for a month",
    "GET /api/budgets/comparison": "Get budget vs actual comparison",
    "POST /api/budgets": "Create new budget",
    "PUT /api/budgets/:id": "Update budget",
    "DELETE /api/budgets/:id": "Delete budget",
}


@app.on_event("startup")
def startup_event():
    init_db()
    logger.info(
        f"startup: environment={settings.environment} "
        f"origins={','.join(settings.allowed_origins)}"
    )


def validation_message(errors: list[dict[str, Any]]) -> str:
    if not errors:
        return "Invalid request"
    first = errors[0]
    error = (first.get("ctx") or {}).get("error")
    if error is not None:
        return str(error)
    return str(first.get("msg", "Invalid request"))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        body = {
            "success": False,
            "message": "Route not found",
            "path": request.url.path,
            "availableEndpoints": list(ENDPOINTS),
        }
    elif isinstance(exc.detail, dict):
        body = {"success": False, **exc.detail}
    else:
        body = {"success": False, "message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": validation_message(exc.errors())},
    )


@contextmanager
def failures_as(operation: str) -> Iterator[None]:
    """Map service errors raised inside the block to HTTP responses."""
    try:
        yield
    except HTTPException:
        raise
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=validation_message(exc.errors())
        ) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"request_failed: operation={operation}")
        raise HTTPException(
            status_code=500,
            detail={"message": f"Failed to {operation}", "error": str(exc)},
        ) from exc


async def json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return payload


def positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value >= 1 else default


def filters_from_request(request: Request) -> TransactionFilters:
    category_param = request.query_params.get("category")
    type_param = request.query_params.get("type")
    category = None
    if category_param:
        try:
            category = Category(category_param)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=INVALID_CATEGORY_MESSAGE) from exc
    txn_type = None
    if type_param:
        try:
            txn_type = TransactionType(type_param)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=INVALID_TYPE_MESSAGE) from exc
    return TransactionFilters(category=category, type=txn_type)


def page_from_request(request: Request) -> PageRequest:
    params = request.query_params
    limit = positive_int(params.get("limit"), DEFAULT_PAGE_SIZE)
    return PageRequest(
        page=positive_int(params.get("page"), 1),
        limit=min(limit, MAX_PAGE_SIZE),
        sort_by=params.get("sortBy") or "date",
        sort_order="asc" if params.get("sortOrder") == "asc" else "desc",
    )


def _timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


@app.get("/")
def index():
    return {
        "success": True,
        "message": "Personal Finance Tracker API",
        "version": APP_VERSION,
        "description": "Personal finance tracking, budgeting, and analytics",
        "features": {
            "transactions": [
                "Transaction management (CRUD)",
                "Financial analytics and insights",
                "Monthly expenses bar chart",
            ],
            "categories": [
                "Predefined categories for transactions",
                "Category-wise pie chart",
                "Dashboard with summary cards",
            ],
            "budgets": [
                "Monthly category budgets",
                "Budget vs actual comparison",
                "Spending insights and recommendations",
            ],
        },
        "endpoints": ENDPOINTS,
        "categories": [member.value for member in Category],
        "budgetCategories": [member.value for member in BudgetCategory],
        "timestamp": _timestamp(),
    }


@app.get("/health")
def health():
    return {"success": True, "message": "Server is healthy", "timestamp": _timestamp()}


@app.get("/api/status")
def api_status():
    return {
        "success": True,
        "message": "API is operational",
        "version": APP_VERSION,
        "environment": settings.environment,
        "timestamp": _timestamp(),
    }


@app.get("/api/transactions/health")
def transactions_health():
    return {
        "success": True,
        "message": "Transactions API is healthy",
        "timestamp": _timestamp(),
        "endpoints": {
            "GET /": "Get all transactions with financial insights",
            "GET /dashboard": "Get dashboard summary with charts",
            "GET /charts/monthly-expenses": "Get monthly expenses chart data",
            "GET /charts/category-pie": "Get category pie chart data",
            "GET /summary": "Get financial summary only",
            "GET /categories": "Get category analysis only",
            "POST /": "Create new transaction",
            "PUT /:id": "Update existing transaction",
            "DELETE /:id": "Delete transaction",
        },
    }


@app.get("/api/transactions")
def list_transactions(request: Request, db: Session = Depends(get_db)):
    filters = filters_from_request(request)
    page = page_from_request(request)
    with failures_as("fetch transactions"):
        data = ReportService(db).transaction_listing(filters, page)
    return {"success": True, "data": data}


@app.get("/api/transactions/summary")
def transactions_summary():
    return RedirectResponse(url="/api/transactions?limit=0", status_code=302)


@app.get("/api/transactions/categories")
def transactions_categories():
    return RedirectResponse(url="/api/transactions?limit=0", status_code=302)


@app.get("/api/transactions/dashboard")
def dashboard(db: Session = Depends(get_db)):
    with failures_as("fetch dashboard summary"):
        data = ReportService(db).dashboard()
    return {"success": True, "data": data}


@app.get("/api/transactions/charts/monthly-expenses")
def monthly_expenses_chart(request: Request, db: Session = Depends(get_db)):
    year = positive_int(request.query_params.get("year"), local_today().year)
    with failures_as("fetch monthly expenses chart"):
        data = ReportService(db).monthly_expenses_chart(year)
    return {"success": True, "data": data}


@app.get("/api/transactions/charts/category-pie")
def category_pie_chart(request: Request, db: Session = Depends(get_db)):
    txn_type = (
        TransactionType.income
        if request.query_params.get("type") == TransactionType.income.value
        else TransactionType.expense
    )
    with failures_as("fetch category pie chart"):
        data = ReportService(db).category_pie(txn_type)
    return {"success": True, "data": data}


@app.post("/api/transactions", status_code=201)
async def create_transaction(request: Request, db: Session = Depends(get_db)):
    payload = await json_body(request)
    with failures_as("create transaction"):
        data = TransactionIn.model_validate(payload)
        txn = TransactionService(db).create(data)
        body = ReportService(db).transaction_created(txn)
    return {"success": True, "message": "Transaction created successfully", "data": body}


@app.post("/api/transactions/seed")
async def seed(request: Request, db: Session = Depends(get_db)):
    if settings.is_production:
        raise HTTPException(status_code=403, detail="Seeding is not allowed in production")
    payload = await json_body(request)
    with failures_as("seed database"):
        data = SeedIn.model_validate(payload)
        seed_transactions(db, data.count)
        body = ReportService(db).seeded(data.count)
    return {
        "success": True,
        "message": f"Successfully seeded {data.count} transactions",
        "data": body,
    }


@app.put("/api/transactions/{transaction_id}")
async def update_transaction(
    transaction_id: int, request: Request, db: Session = Depends(get_db)
):
    payload = await json_body(request)
    with failures_as("update transaction"):
        data = TransactionUpdate.model_validate(payload)
        txn = TransactionService(db).update(transaction_id, data)
        body = ReportService(db).transaction_updated(txn)
    return {"success": True, "message": "Transaction updated successfully", "data": body}


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(transaction_id: int, db: Session = Depends(get_db)):
    with failures_as("delete transaction"):
        txn = TransactionService(db).delete(transaction_id)
        body = ReportService(db).transaction_deleted(txn)
    return {"success": True, "message": "Transaction deleted successfully", "data": body}


@app.get("/api/budgets/health")
def budgets_health():
    return {
        "success": True,
        "message": "Budgets API is healthy",
        "timestamp": _timestamp(),
        "endpoints": {
            "GET /": "Get all budgets for a month",
            "GET /comparison": "Get budget vs actual comparison",
            "POST /": "Create new budget",
            "PUT /:id": "Update existing budget",
            "DELETE /:id": "Delete budget",
            "GET /health": "API health check",
        },
    }


@app.get("/api/budgets")
def list_budgets(request: Request, db: Session = Depends(get_db)):
    with failures_as("fetch budgets"):
        period = resolve_month(
            request.query_params.get("month"), request.query_params.get("year")
        )
        data = ReportService(db).budget_overview(period)
    return {"success": True, "data": data}


@app.get("/api/budgets/comparison")
def budget_comparison(request: Request, db: Session = Depends(get_db)):
    with failures_as("fetch budget comparison"):
        period = resolve_month(
            request.query_params.get("month"), request.query_params.get("year")
        )
        data = ReportService(db).budget_comparison(period)
    return {"success": True, "data": data}


@app.post("/api/budgets", status_code=201)
async def create_budget(request: Request, db: Session = Depends(get_db)):
    payload = await json_body(request)
    with failures_as("create budget"):
        data = BudgetIn.model_validate(payload)
        budget = BudgetService(db).create(data)
        body = ReportService(db).budget_created(budget)
    return {"success": True, "message": "Budget created successfully", "data": body}


@app.put("/api/budgets/{budget_id}")
async def update_budget(budget_id: int, request: Request, db: Session = Depends(get_db)):
    payload = await json_body(request)
    with failures_as("update budget"):
        data = BudgetUpdate.model_validate(payload)
        budget = BudgetService(db).update_amount(budget_id, data)
        body = ReportService(db).budget_updated(budget)
    return {"success": True, "message": "Budget updated successfully", "data": body}


@app.delete("/api/budgets/{budget_id}")
def delete_budget(budget_id: int, db: Session = Depends(get_db)):
    with failures_as("delete budget"):
        budget = BudgetService(db).delete(budget_id)
    return {
        "success": True,
        "message": "Budget deleted successfully",
        "data": {
            "deletedBudget": {
                "category": budget.category.value,
                "month": budget.month,
                "year": budget.year,
            }
        },
    }


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
