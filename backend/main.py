"""
Module: main.py
Description: FastAPI application entry point with all API routes for MoneyWise.

This module provides REST API endpoints for:
    - Signup, login and account settings
    - Expense, budget and savings management
    - Payment reminders with scheduled email notifications
    - Rate-limited, cached AI spending analysis
    - CSV/Excel report export

Author: MoneyWise Team

Dependencies:
    - FastAPI for REST API framework
    - SQLAlchemy for database operations
    - OpenAI for AI-powered analysis

Usage:
    uvicorn main:app --reload --host 0.0.0.0 --port 8000
"""

import os
import math
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, BackgroundTasks, Depends, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session as DBSession

from auth import (
    get_current_user, verify_cron_secret,
    hash_password, verify_password, create_access_token
)
from database import get_db, init_db
from models import User, Expense, Budget, Savings, Reminder
from schemas import (
    SignupRequest, LoginRequest, AuthResponse, UserOut, UserUpdate,
    SettingsUpdate, AccountResetResponse,
    ExpenseCreate, ExpenseOut, BudgetUpsert, BudgetOut,
    SavingsCreate, SavingsUpdate, SavingsDelete, SavingsOut,
    ReminderCreate, ReminderUpdate, ReminderDelete, ReminderOut,
    NotifyRequest, NotifyResponse, NotifySingleResponse, CronResponse,
    AnalysisRequest, AnalysisResponse, ReportRequest, HealthResponse
)
from services import (
    AIService, AnalysisCache, RateLimiter, AnalysisGateway,
    RateLimited, GenerationFailed, EmailService,
    ReminderScheduler, ReminderNotFound, UserNotFound,
    build_report_data, render_report, UnsupportedReportFormat
)
from services import email_templates
from services.observability import logger, metrics

load_dotenv()


# =============================================================================
# Configuration
# =============================================================================

ANALYZE_RATE_LIMIT = int(os.getenv("ANALYZE_RATE_LIMIT", "10"))
ANALYZE_RATE_WINDOW_SECONDS = float(os.getenv("ANALYZE_RATE_WINDOW_SECONDS", "60"))
ANALYSIS_CACHE_TTL_SECONDS = float(os.getenv("ANALYSIS_CACHE_TTL_SECONDS", "3600"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]


def build_analysis_gateway() -> AnalysisGateway:
    """Construct the limiter, cache and AI client shared by all analysis requests."""
    return AnalysisGateway(
        rate_limiter=RateLimiter(
            max_requests=ANALYZE_RATE_LIMIT,
            window_seconds=ANALYZE_RATE_WINDOW_SECONDS,
        ),
        cache=AnalysisCache(ttl_seconds=ANALYSIS_CACHE_TTL_SECONDS),
        ai_service=AIService(),
    )


# =============================================================================
# Application Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On startup:
        - Create database tables
        - Build the analysis gateway

    On shutdown:
        - Drop in-memory rate limit and cache state
    """
    logger.info("Starting MoneyWise API")
    init_db()
    app.state.analysis_gateway = build_analysis_gateway()

    yield

    app.state.analysis_gateway.close()
    logger.info("Shutting down MoneyWise API")


# =============================================================================
# FastAPI Application Configuration
# =============================================================================

app = FastAPI(
    title="MoneyWise API",
    description="""
    Personal finance API: track expenses, budgets and savings, get payment
    reminders by email, export reports and ask an AI for spending analysis.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Dependency Injection
# =============================================================================

def get_analysis_gateway(request: Request) -> AnalysisGateway:
    """Dependency: the application's analysis gateway."""
    gateway = getattr(request.app.state, "analysis_gateway", None)
    if gateway is None:
        gateway = build_analysis_gateway()
        request.app.state.analysis_gateway = gateway
    return gateway


def get_email_service() -> EmailService:
    """Dependency: SMTP mail transport."""
    return EmailService()


def send_welcome_email(email_service: EmailService, name: str, email: str) -> None:
    message = email_templates.welcome(name)
    result = email_service.send_mail(email, message["subject"], message["html"])
    if not result.ok:
        logger.warning("Welcome email not sent", reason=result.reason)


def get_user_or_404(db: DBSession, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# =============================================================================
# System Endpoints
# =============================================================================

@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check endpoint",
)
async def health_check(
    db: DBSession = Depends(get_db),
    gateway: AnalysisGateway = Depends(get_analysis_gateway),
) -> HealthResponse:
    """Check the database connection and the OpenAI connection."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {str(e)}"

    openai_connected = await gateway.ai_service.check_connection()
    openai_status = "connected" if openai_connected else "disconnected"

    return HealthResponse(
        status="healthy" if db_status == "connected" else "degraded",
        database=db_status,
        openai=openai_status,
    )


@app.get("/metrics", tags=["System"], summary="Get application metrics")
async def get_metrics():
    """In-process counters and timing data."""
    return metrics.get_summary()


# =============================================================================
# Auth Endpoints
# =============================================================================

@app.post("/auth/signup", response_model=AuthResponse, tags=["Auth"])
async def signup(
    request: SignupRequest,
    background_tasks: BackgroundTasks,
    db: DBSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> AuthResponse:
    """Create an account, queue the welcome email and return the user with an access token."""
    if db.query(User).filter(User.email == request.email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists")

    user = User(
        name=request.name,
        email=request.email,
        password_hash=hash_password(request.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    background_tasks.add_task(send_welcome_email, email_service, user.name, user.email)
    logger.info("User signed up", user=user.id[:8])
    metrics.increment("auth.signup")
    return AuthResponse(user=UserOut.model_validate(user), token=create_access_token(user.id))


@app.post("/auth/login", response_model=AuthResponse, tags=["Auth"])
async def login(request: LoginRequest, db: DBSession = Depends(get_db)) -> AuthResponse:
    """Exchange email and password for an access token."""
    user = db.query(User).filter(User.email == request.email).first()
    if not user or not verify_password(request.password, user.password_hash):
        metrics.increment("auth.login_failed")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    metrics.increment("auth.login")
    return AuthResponse(user=UserOut.model_validate(user), token=create_access_token(user.id))


# =============================================================================
# User & Settings Endpoints
# =============================================================================

@app.get("/user", response_model=UserOut, tags=["User"])
async def get_profile(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
) -> UserOut:
    return UserOut.model_validate(get_user_or_404(db, user_id))


@app.put("/user", response_model=UserOut, tags=["User"])
async def update_profile(
    request: UserUpdate,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
) -> UserOut:
    """Update name, email, password or notification preference; omitted fields are kept."""
    user = get_user_or_404(db, user_id)

    if request.name:
        user.name = request.name
    if request.email:
        user.email = request.email
    if request.password:
        user.password_hash = hash_password(request.password)
    if request.email_notifications is not None:
        user.email_notifications = request.email_notifications

    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)


@app.get("/user/settings", response_model=UserOut, tags=["User"])
async def get_settings(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
) -> UserOut:
    return UserOut.model_validate(get_user_or_404(db, user_id))


@app.put("/user/settings", response_model=UserOut, tags=["User"])
async def update_settings(
    request: SettingsUpdate,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
) -> UserOut:
    user = get_user_or_404(db, user_id)

    for field, value in request.model_dump(exclude_none=True).items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return UserOut.model_validate(user)


@app.delete("/user/settings/account", tags=["User"])
async def delete_account(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    """Delete the user together with all of their data."""
    user = get_user_or_404(db, user_id)
    db.delete(user)
    db.commit()

    logger.info("Account deleted", user=user_id[:8])
    return {"message": "Account deleted successfully"}


@app.post("/user/settings/account/reset", response_model=AccountResetResponse, tags=["User"])
async def reset_account(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
) -> AccountResetResponse:
    """Remove expenses and budgets and restore default settings."""
    user = get_user_or_404(db, user_id)

    db.query(Expense).filter(Expense.user_id == user_id).delete()
    db.query(Budget).filter(Budget.user_id == user_id).delete()
    user.currency = "USD"
    user.email_notifications = True

    db.commit()
    db.refresh(user)
    return AccountResetResponse(message="Account reset successfully", user=UserOut.model_validate(user))


# =============================================================================
# Expense Endpoints
# =============================================================================

@app.get("/expenses", response_model=list[ExpenseOut], tags=["Expenses"])
async def list_expenses(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    return (
        db.query(Expense)
        .filter(Expense.user_id == user_id)
        .order_by(Expense.date.desc())
        .all()
    )


@app.post("/expenses", response_model=ExpenseOut, tags=["Expenses"])
async def create_expense(
    request: ExpenseCreate,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    expense = Expense(user_id=user_id, **request.model_dump())
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return expense


# =============================================================================
# Budget Endpoints
# =============================================================================

@app.get("/budgets", response_model=list[BudgetOut], tags=["Budgets"])
async def list_budgets(
    month: Optional[int] = None,
    year: Optional[int] = None,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    """Budgets for one month; month and year are required."""
    if month is None or year is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid month or year")

    return (
        db.query(Budget)
        .filter(Budget.user_id == user_id)
        .filter(Budget.month == month)
        .filter(Budget.year == year)
        .all()
    )


@app.post("/budgets", response_model=BudgetOut, tags=["Budgets"])
async def upsert_budget(
    request: BudgetUpsert,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    """Create the category budget for the month, or update its amount."""
    budget = (
        db.query(Budget)
        .filter(Budget.user_id == user_id)
        .filter(Budget.category == request.category)
        .filter(Budget.month == request.month)
        .filter(Budget.year == request.year)
        .first()
    )

    if budget:
        budget.amount = request.amount
        budget.remaining = request.amount - (budget.spent or 0.0)
    else:
        budget = Budget(
            user_id=user_id,
            category=request.category,
            amount=request.amount,
            spent=0.0,
            remaining=request.amount,
            month=request.month,
            year=request.year,
        )
        db.add(budget)

    db.commit()
    db.refresh(budget)
    return budget


# =============================================================================
# Savings Endpoints
# =============================================================================

def get_owned_savings(db: DBSession, savings_id: str, user_id: str) -> Savings:
    savings = (
        db.query(Savings)
        .filter(Savings.id == savings_id)
        .filter(Savings.user_id == user_id)
        .first()
    )
    if not savings:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Savings record not found")
    return savings


@app.get("/savings", response_model=list[SavingsOut], tags=["Savings"])
async def list_savings(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    return (
        db.query(Savings)
        .filter(Savings.user_id == user_id)
        .order_by(Savings.created_at.desc())
        .all()
    )


@app.post("/savings", response_model=SavingsOut, tags=["Savings"])
async def create_savings(
    request: SavingsCreate,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    savings = Savings(user_id=user_id, amount=request.amount, description=request.description or "")
    db.add(savings)
    db.commit()
    db.refresh(savings)
    return savings


@app.put("/savings", response_model=SavingsOut, tags=["Savings"])
async def update_savings(
    request: SavingsUpdate,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    savings = get_owned_savings(db, request.id, user_id)
    if request.amount is not None:
        savings.amount = request.amount
    if request.description is not None:
        savings.description = request.description
    db.commit()
    db.refresh(savings)
    return savings


@app.delete("/savings", response_model=SavingsOut, tags=["Savings"])
async def delete_savings(
    request: SavingsDelete,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    savings = get_owned_savings(db, request.id, user_id)
    deleted = SavingsOut.model_validate(savings)
    db.delete(savings)
    db.commit()
    return deleted


# =============================================================================
# Reminder Endpoints
# =============================================================================

def get_owned_reminder(db: DBSession, reminder_id: str, user_id: str) -> Reminder:
    reminder = (
        db.query(Reminder)
        .filter(Reminder.id == reminder_id)
        .filter(Reminder.user_id == user_id)
        .first()
    )
    if not reminder:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reminder not found or unauthorized"
        )
    return reminder


@app.get("/reminders", response_model=list[ReminderOut], tags=["Reminders"])
async def list_reminders(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    return (
        db.query(Reminder)
        .filter(Reminder.user_id == user_id)
        .order_by(Reminder.due_date.asc())
        .all()
    )


@app.post("/reminders", response_model=ReminderOut, tags=["Reminders"])
async def create_reminder(
    request: ReminderCreate,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    reminder = Reminder(user_id=user_id, last_sent_at=None, **request.model_dump())
    db.add(reminder)
    db.commit()
    db.refresh(reminder)
    return reminder


@app.patch("/reminders", response_model=ReminderOut, tags=["Reminders"])
async def update_reminder(
    request: ReminderUpdate,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    """Update fields of an owned reminder, e.g. mark it PAID."""
    reminder = get_owned_reminder(db, request.id, user_id)
    for field, value in request.model_dump(exclude={"id"}, exclude_none=True).items():
        setattr(reminder, field, value)
    db.commit()
    db.refresh(reminder)
    return reminder


@app.delete("/reminders", tags=["Reminders"])
async def delete_reminder(
    request: ReminderDelete,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    reminder = get_owned_reminder(db, request.id, user_id)
    db.delete(reminder)
    db.commit()
    return {"message": "Reminder deleted successfully"}


@app.get("/reminders/notify", response_model=NotifyResponse, tags=["Reminders"])
def notify_due_reminders(
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
    email_service: EmailService = Depends(get_email_service),
) -> NotifyResponse:
    """Send today's due notifications for the current user's pending reminders."""
    scheduler = ReminderScheduler(db, email_service)
    try:
        outcomes = scheduler.process_for_user(user_id)
    except UserNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    results = [o.to_dict() for o in outcomes]
    sent = [r for r in results if r["status"] == "sent"]
    return NotifyResponse(success=True, notifications_sent=sent, count=len(sent), results=results)


@app.post("/reminders/notify", response_model=NotifySingleResponse, tags=["Reminders"])
def notify_single_reminder(
    request: NotifyRequest,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
    email_service: EmailService = Depends(get_email_service),
) -> NotifySingleResponse:
    """Send a notification for one reminder immediately, regardless of its due date."""
    scheduler = ReminderScheduler(db, email_service)
    try:
        outcome = scheduler.send_single(user_id, request.reminder_id)
    except (ReminderNotFound, UserNotFound):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reminder not found or unauthorized"
        )

    if outcome.status != "sent":
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send notification"
        )
    return NotifySingleResponse(success=True, message="Notification sent successfully")


@app.get(
    "/cron/check-reminders",
    response_model=CronResponse,
    tags=["Reminders"],
    dependencies=[Depends(verify_cron_secret)],
)
def check_reminders(
    db: DBSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> CronResponse:
    """Periodic job: notify every user whose pending reminders hit a threshold day today."""
    outcomes = ReminderScheduler(db, email_service).process_all()
    results = [o.to_dict() for o in outcomes]
    success_count = sum(1 for r in results if r["status"] == "sent")

    logger.info("Reminder check completed", processed=len(results), sent=success_count)
    return CronResponse(
        success=True,
        processed_count=len(results),
        success_count=success_count,
        results=results,
    )


# =============================================================================
# AI Analysis Endpoint
# =============================================================================

def load_analysis_data(db: DBSession, user_id: str) -> dict:
    """The user's stored budgets and expenses in the analysis payload shape."""
    budgets = db.query(Budget).filter(Budget.user_id == user_id).all()
    expenses = (
        db.query(Expense)
        .filter(Expense.user_id == user_id)
        .order_by(Expense.date.desc())
        .all()
    )
    return {
        "budgets": [
            {"category": b.category, "amount": b.amount, "spent": b.spent,
             "remaining": b.remaining, "month": b.month, "year": b.year}
            for b in budgets
        ],
        "expenses": [
            {"category": e.category, "amount": e.amount,
             "description": e.description, "date": e.date.isoformat()}
            for e in expenses
        ],
    }


@app.post(
    "/ai/analyze",
    response_model=AnalysisResponse,
    tags=["AI"],
    summary="Analyze spending with AI",
)
async def analyze(
    request: AnalysisRequest,
    response: Response,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user),
    gateway: AnalysisGateway = Depends(get_analysis_gateway),
) -> AnalysisResponse:
    """
    Ask the AI for an analysis of budgets and expenses.

    Rate limited per user. Identical requests inside the cache TTL are
    answered from cache without calling the model.

    Raises:
        HTTPException: 429 if rate limited, 502 if generation fails.
    """
    if request.data is not None:
        data = request.data.model_dump(mode="json", exclude_none=True)
    else:
        data = load_analysis_data(db, user_id)

    try:
        result = await gateway.acquire_and_analyze(user_id, request.prompt, data)
    except RateLimited as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={
                "Retry-After": str(math.ceil(e.retry_after)),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(int(e.retry_after)),
            },
        )
    except GenerationFailed as e:
        logger.error("Analysis generation failed", user=user_id[:8], error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to generate analysis"
        )

    response.headers["X-RateLimit-Remaining"] = str(gateway.rate_limiter.remaining(user_id))
    return AnalysisResponse(analysis=result.analysis, cached=result.cached)


# =============================================================================
# Report Endpoint
# =============================================================================

@app.post("/reports/generate", tags=["Reports"])
async def generate_report(
    request: ReportRequest,
    db: DBSession = Depends(get_db),
    user_id: str = Depends(get_current_user)
):
    """Export the expense summary for a date range as a downloadable file."""
    data = build_report_data(
        db, user_id, request.start_date, request.end_date, request.categories
    )

    try:
        payload, content_type, extension = render_report(data, request.format)
    except UnsupportedReportFormat as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    metrics.increment("reports.generated", tags={"format": request.format})
    return Response(
        content=payload,
        media_type=content_type,
        headers={"Content-Disposition": f"attachment; filename=financial-report.{extension}"},
    )
