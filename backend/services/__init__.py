"""Backend services for MoneyWise."""

from .ai_service import AIService, GenerationFailed
from .analysis_cache import AnalysisCache, fingerprint
from .rate_limiter import RateLimiter, RateLimited
from .analysis_gateway import AnalysisGateway, AnalysisResult
from .email_service import EmailService, Sent, Failed
from .reminder_policy import NOTIFICATION_THRESHOLDS, days_until_due, is_notification_due
from .reminder_scheduler import (
    ReminderScheduler, ReminderOutcome, ReminderNotFound, UserNotFound
)
from .report_generator import (
    build_report_data, render_report, UnsupportedReportFormat
)

__all__ = [
    "AIService",
    "GenerationFailed",
    "AnalysisCache",
    "fingerprint",
    "RateLimiter",
    "RateLimited",
    "AnalysisGateway",
    "AnalysisResult",
    "EmailService",
    "Sent",
    "Failed",
    "NOTIFICATION_THRESHOLDS",
    "days_until_due",
    "is_notification_due",
    "ReminderScheduler",
    "ReminderOutcome",
    "ReminderNotFound",
    "UserNotFound",
    "build_report_data",
    "render_report",
    "UnsupportedReportFormat",
]
