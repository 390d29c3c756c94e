import logging
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from aggregates import breakdown_rows, summarize
from config import Settings, get_settings
from database import SessionLocal
from errors import (
    InsufficientDataError,
    ResetDisabledError,
    StoreError,
    UpstreamError,
    ValidationError,
)
from insights import GeminiProvider, InsightService
from models import IncomePeriod, TransactionType
from periods import today_local
from scheduler import SchedulerManager
from schemas import (
    ExpenseIn,
    IncomeIn,
    InsightOut,
    SummaryOut,
    TransactionOut,
    TransactionResult,
)
from services import TransactionService
from tokens import (
    generate_csrf_token,
    generate_reset_token,
    validate_csrf_token,
    validate_reset_token,
)

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

app = FastAPI(title="Monthly Ledger")
app.mount("/static", StaticFiles(directory=BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=BASE_DIR / "templates")


def _load_app_version() -> str:
    try:
        import tomllib
    except Exception:
        return "unknown"
    try:
        with open(BASE_DIR / "pyproject.toml", "rb") as f:
            data = tomllib.load(f)
        return str(data.get("project", {}).get("version", "unknown"))
    except Exception:
        return "unknown"


APP_VERSION = _load_app_version()


def format_currency(amount: float, symbol: Optional[str] = None) -> str:
    symbol = get_settings().currency_symbol if symbol is None else symbol
    sign = "-" if amount < 0 else ""
    value = abs(amount)
    if float(value).is_integer():
        return f"{sign}{symbol}{value:,.0f}"
    return f"{sign}{symbol}{value:,.2f}"


templates.env.filters["currency"] = format_currency
templates.env.globals["TransactionType"] = TransactionType
templates.env.globals["csrf_token"] = generate_csrf_token


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Callable[[], date]:
    return today_local


def get_insight_service() -> InsightService:
    return InsightService(GeminiProvider.from_settings())


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    if get_settings().scheduler_enabled:
        scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(status_code=400, content={"detail": "; ".join(messages)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"store_error: path={request.url.path} error={exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def render(
    request: Request,
    template: str,
    context: dict[str, object],
    status_code: int = 200,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request, template, context, status_code=status_code
    )


def dashboard_context(
    db: Session,
    clock: Callable[[], date],
    **extra: object,
) -> dict[str, object]:
    service = TransactionService(db, clock)
    records = service.current()
    summary = summarize(records)
    context: dict[str, object] = {
        "scope": service.scope(),
        "transactions": records,
        "summary": summary,
        "chart_rows": breakdown_rows(summary.breakdown),
        "income_periods": list(IncomePeriod),
        "app_version": APP_VERSION,
        "insight": None,
        "insight_error": None,
        "form_error": None,
    }
    context.update(extra)
    return context


@app.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
):
    return render(request, "dashboard.html", dashboard_context(db, clock))


@app.post("/income", response_class=HTMLResponse)
def submit_income(
    request: Request,
    csrf_token: str = Form(""),
    amount: str = Form(""),
    period: str = Form(IncomePeriod.monthly.value),
    note: str = Form(""),
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
):
    if not validate_csrf_token(csrf_token):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    try:
        TransactionService(db, clock).add_income(amount, period, note)
    except ValidationError as exc:
        context = dashboard_context(db, clock, form_error=str(exc))
        return render(request, "dashboard.html", context, status_code=400)
    return RedirectResponse(url=request.app.url_path_for("dashboard"), status_code=303)


@app.post("/expense", response_class=HTMLResponse)
def submit_expense(
    request: Request,
    csrf_token: str = Form(""),
    category: str = Form(""),
    amount: str = Form(""),
    note: str = Form(""),
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
):
    if not validate_csrf_token(csrf_token):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    try:
        TransactionService(db, clock).add_expense(category, amount, note)
    except ValidationError as exc:
        context = dashboard_context(db, clock, form_error=str(exc))
        return render(request, "dashboard.html", context, status_code=400)
    return RedirectResponse(url=request.app.url_path_for("dashboard"), status_code=303)


@app.post("/insight", response_class=HTMLResponse)
def submit_insight(
    request: Request,
    csrf_token: str = Form(""),
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
    insights: InsightService = Depends(get_insight_service),
):
    if not validate_csrf_token(csrf_token):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")
    records = TransactionService(db, clock).current()
    try:
        text = insights.generate(records)
    except InsufficientDataError as exc:
        context = dashboard_context(db, clock, insight_error=str(exc))
        return render(request, "dashboard.html", context, status_code=400)
    except UpstreamError as exc:
        logger.error(f"insight_failed: error={exc} details={exc.details}")
        context = dashboard_context(
            db, clock, insight_error="Failed to generate AI insight."
        )
        return render(request, "dashboard.html", context, status_code=500)
    return render(request, "dashboard.html", dashboard_context(db, clock, insight=text))


@app.post("/api/transactions/income", response_model=TransactionResult)
def api_add_income(
    payload: IncomeIn,
    response: Response,
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
):
    try:
        txn, created = TransactionService(db, clock).add_income(
            payload.amount, payload.period, payload.note
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    response.status_code = 201 if created else 200
    message = "Income added successfully." if created else "Income updated successfully."
    return TransactionResult(message=message, data=TransactionOut.from_record(txn))


@app.post(
    "/api/transactions/expense", response_model=TransactionResult, status_code=201
)
def api_add_expense(
    payload: ExpenseIn,
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
):
    try:
        txn = TransactionService(db, clock).add_expense(
            payload.category, payload.amount, payload.note
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return TransactionResult(
        message="Expense added successfully.", data=TransactionOut.from_record(txn)
    )


@app.get("/api/transactions/current", response_model=list[TransactionOut])
def api_current(
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
):
    return [
        TransactionOut.from_record(txn)
        for txn in TransactionService(db, clock).current()
    ]


@app.get("/api/transactions/summary", response_model=SummaryOut)
def api_summary(
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
):
    service = TransactionService(db, clock)
    scope = service.scope()
    summary = summarize(service.current())
    return SummaryOut(
        month=scope.month,
        year=scope.year,
        total_income=summary.total_income,
        total_expense=summary.total_expense,
        balance=summary.balance,
        breakdown=summary.breakdown,
    )


@app.post("/api/transactions/insight", response_model=InsightOut)
def api_insight(
    db: Session = Depends(get_db),
    clock: Callable[[], date] = Depends(get_clock),
    insights: InsightService = Depends(get_insight_service),
):
    records = TransactionService(db, clock).current()
    try:
        text = insights.generate(records)
    except InsufficientDataError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UpstreamError as exc:
        logger.error(f"insight_failed: error={exc} details={exc.details}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to generate AI insight.",
                "details": exc.details if exc.details is not None else str(exc),
            },
        )
    return InsightOut(insight=text)


def _require_reset_enabled(settings: Settings) -> None:
    if not settings.allow_reset:
        raise ResetDisabledError("Reset is disabled in this deployment.")


@app.get("/api/transactions/reset-token")
def api_reset_token(settings: Settings = Depends(get_settings)):
    try:
        _require_reset_enabled(settings)
    except ResetDisabledError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    return {"token": generate_reset_token()}


@app.delete("/api/transactions/reset")
def api_reset(
    confirm: str = "",
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    try:
        _require_reset_enabled(settings)
        if not validate_reset_token(confirm):
            raise ResetDisabledError("A valid confirmation token is required.")
    except ResetDisabledError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    deleted = TransactionService(db).reset_all()
    return {"message": "All transactions cleared successfully.", "deleted": deleted}
