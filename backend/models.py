"""
SQLAlchemy ORM models for MoneyWise.

Includes:
    - User (owner of every other row)
    - Expense, Budget, Savings
    - Reminder (payment reminders with notification bookkeeping)

Author: MoneyWise Team
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime,
    ForeignKey, Text, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database import Base


REMINDER_PENDING = "PENDING"


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    Account holder.

    All expenses, budgets, savings and reminders are scoped by user id
    and removed together with the user.
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)

    # Preferences
    currency = Column(String, default="USD")
    email_notifications = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    expenses = relationship("Expense", back_populates="user", cascade="all, delete-orphan")
    budgets = relationship("Budget", back_populates="user", cascade="all, delete-orphan")
    savings = relationship("Savings", back_populates="user", cascade="all, delete-orphan")
    reminders = relationship("Reminder", back_populates="user", cascade="all, delete-orphan")


class Expense(Base):
    """A single spending entry."""
    __tablename__ = "expenses"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    description = Column(String, nullable=False)
    date = Column(DateTime, nullable=False)
    category = Column(String, nullable=False)
    status = Column(String, default="PENDING")
    notes = Column(Text)

    user = relationship("User", back_populates="expenses")


class Budget(Base):
    """Monthly budget for one category."""
    __tablename__ = "budgets"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    category = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    spent = Column(Float, default=0.0)
    remaining = Column(Float, default=0.0)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    user = relationship("User", back_populates="budgets")

    __table_args__ = (
        UniqueConstraint("user_id", "category", "month", "year", name="uq_budget_user_category_month"),
    )


class Savings(Base):
    """Money set aside by the user."""
    __tablename__ = "savings"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    description = Column(String, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="savings")


class Reminder(Base):
    """
    Payment reminder.

    Created PENDING with no last_sent_at. The scheduler stamps last_sent_at
    every time a notification goes out; PAID reminders are never notified.
    """
    __tablename__ = "reminders"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    due_date = Column(DateTime, nullable=False)
    category = Column(String, nullable=False)
    status = Column(String, default=REMINDER_PENDING)  # PENDING|PAID
    is_recurring = Column(Boolean, default=False)
    frequency = Column(String)  # WEEKLY|MONTHLY|YEARLY
    last_sent_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="reminders")

    __table_args__ = (
        Index("ix_reminders_user_id_due_date", "user_id", "due_date"),
        Index("ix_reminders_status", "status"),
    )
