"""Pydantic request/response schemas for type safety."""

from pydantic import BaseModel, Field, EmailStr
from datetime import datetime
from typing import Optional, Literal


ReminderStatus = Literal["PENDING", "PAID"]
ReminderFrequency = Literal["WEEKLY", "MONTHLY", "YEARLY"]


# =============================================================================
# Auth & User Schemas
# =============================================================================

class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    currency: Optional[str] = "USD"
    email_notifications: bool = True

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: UserOut
    token: str


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    email_notifications: Optional[bool] = None


class SettingsUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    email_notifications: Optional[bool] = None


class AccountResetResponse(BaseModel):
    message: str
    user: UserOut


# =============================================================================
# Expense / Budget / Savings Schemas
# =============================================================================

class ExpenseCreate(BaseModel):
    amount: float
    description: str
    date: datetime
    category: str
    notes: Optional[str] = None


class ExpenseOut(BaseModel):
    id: str
    amount: float
    description: str
    date: datetime
    category: str
    status: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class BudgetUpsert(BaseModel):
    category: str
    amount: float = Field(ge=0)
    month: int = Field(ge=1, le=12)
    year: int


class BudgetOut(BaseModel):
    id: str
    category: str
    amount: float
    spent: float = 0.0
    remaining: float = 0.0
    month: int
    year: int

    class Config:
        from_attributes = True


class SavingsCreate(BaseModel):
    amount: float
    description: Optional[str] = ""


class SavingsUpdate(BaseModel):
    id: str
    amount: Optional[float] = None
    description: Optional[str] = None


class SavingsDelete(BaseModel):
    id: str


class SavingsOut(BaseModel):
    id: str
    amount: float
    description: Optional[str] = ""
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# Reminder Schemas
# =============================================================================

class ReminderCreate(BaseModel):
    title: str = Field(..., min_length=1)
    amount: float
    due_date: datetime
    category: str
    status: ReminderStatus = "PENDING"
    is_recurring: bool = False
    frequency: Optional[ReminderFrequency] = None


class ReminderUpdate(BaseModel):
    id: str
    title: Optional[str] = None
    amount: Optional[float] = None
    due_date: Optional[datetime] = None
    category: Optional[str] = None
    status: Optional[ReminderStatus] = None
    is_recurring: Optional[bool] = None
    frequency: Optional[ReminderFrequency] = None


class ReminderDelete(BaseModel):
    id: str


class ReminderOut(BaseModel):
    id: str
    title: str
    amount: float
    due_date: datetime
    category: str
    status: str
    is_recurring: bool = False
    frequency: Optional[str] = None
    last_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotifyRequest(BaseModel):
    reminder_id: str


class ReminderOutcomeOut(BaseModel):
    id: str
    status: Literal["sent", "skipped", "failed", "error"]
    reason: Optional[str] = None
    days_until_due: Optional[int] = None


class NotifyResponse(BaseModel):
    """On-demand run for the current user."""
    success: bool
    notifications_sent: list[ReminderOutcomeOut]
    count: int
    results: list[ReminderOutcomeOut]


class NotifySingleResponse(BaseModel):
    success: bool
    message: str


class CronResponse(BaseModel):
    success: bool
    processed_count: int
    success_count: int
    results: list[ReminderOutcomeOut]


# =============================================================================
# AI Analysis Schemas
# =============================================================================

class AnalysisBudget(BaseModel):
    category: str
    amount: float
    spent: Optional[float] = None
    remaining: Optional[float] = None
    month: Optional[int] = None
    year: Optional[int] = None


class AnalysisExpense(BaseModel):
    category: str
    amount: float
    description: Optional[str] = None
    date: Optional[datetime] = None


class AnalysisData(BaseModel):
    budgets: list[AnalysisBudget] = []
    expenses: list[AnalysisExpense] = []


class AnalysisRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=2000)
    data: Optional[AnalysisData] = Field(
        None, description="Budgets and expenses to analyze; defaults to the user's stored data"
    )


class AnalysisResponse(BaseModel):
    analysis: str
    cached: bool = False


# =============================================================================
# Report Schemas
# =============================================================================

class ReportRequest(BaseModel):
    start_date: datetime
    end_date: datetime
    categories: Optional[list[str]] = None
    format: Literal["PDF", "CSV", "EXCEL"]
    type: Literal["EXPENSE", "BUDGET", "SAVINGS", "COMPLETE"] = "COMPLETE"


# =============================================================================
# System Schemas
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    database: str
    openai: str
