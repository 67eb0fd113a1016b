"""
Payment reminder notification runs.

Evaluates pending reminders against the due-date policy, emails the owner
for each one that is due, and stamps last_sent_at on successful delivery.
A failure on one reminder is recorded in its outcome and never stops the
rest of the run.

Author: MoneyWise Team
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session as DBSession

from models import Reminder, User, REMINDER_PENDING
from . import email_templates
from .email_service import EmailService, Sent
from .observability import logger, metrics, timed, log_reminder_outcome
from .reminder_policy import days_until_due, skip_reason


class ReminderNotFound(Exception):
    """Reminder does not exist or belongs to another user."""


class UserNotFound(Exception):
    """Reminder owner could not be loaded."""


@dataclass
class ReminderOutcome:
    id: str
    status: str  # sent|skipped|failed|error
    reason: Optional[str] = None
    days_until_due: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


class ReminderScheduler:
    """Runs reminder notifications for every user or for one user."""

    def __init__(
        self,
        db: DBSession,
        email_service: EmailService,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            db: Database session used for reads and last_sent_at updates.
            email_service: Mail transport.
            clock: Source of local wall-clock time.
        """
        self.db = db
        self.email_service = email_service
        self.clock = clock

    # -------------------------------------------------------------------------
    # Runs
    # -------------------------------------------------------------------------

    @timed("reminders.batch")
    def process_all(self) -> List[ReminderOutcome]:
        """Evaluate every pending reminder system-wide."""
        reminders = (
            self.db.query(Reminder)
            .filter(Reminder.status == REMINDER_PENDING)
            .order_by(Reminder.due_date.asc())
            .all()
        )
        logger.info("Processing reminders", scope="all", count=len(reminders))
        today = self.clock()
        return [self._process(reminder, reminder.user, today) for reminder in reminders]

    @timed("reminders.user")
    def process_for_user(self, user_id: str) -> List[ReminderOutcome]:
        """Evaluate one user's pending reminders."""
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFound(user_id)

        reminders = (
            self.db.query(Reminder)
            .filter(Reminder.user_id == user_id)
            .filter(Reminder.status == REMINDER_PENDING)
            .order_by(Reminder.due_date.asc())
            .all()
        )
        logger.info("Processing reminders", scope="user", user=user_id[:8], count=len(reminders))
        today = self.clock()
        return [self._process(reminder, user, today) for reminder in reminders]

    def send_single(self, user_id: str, reminder_id: str) -> ReminderOutcome:
        """
        Send a notification for one reminder right now.

        Skips the threshold and same-day checks but still requires the
        reminder to belong to user_id.
        """
        reminder = (
            self.db.query(Reminder)
            .filter(Reminder.id == reminder_id)
            .filter(Reminder.user_id == user_id)
            .first()
        )
        if not reminder:
            raise ReminderNotFound(reminder_id)

        user = reminder.user
        if not user:
            raise UserNotFound(user_id)

        return self._deliver(reminder, user, days_until_due(reminder.due_date, self.clock()))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _process(self, reminder: Reminder, user: User, today: datetime) -> ReminderOutcome:
        days = days_until_due(reminder.due_date, today)
        reason = skip_reason(reminder, today)
        if reason is not None:
            outcome = ReminderOutcome(reminder.id, "skipped", reason=reason, days_until_due=days)
            log_reminder_outcome(reminder.id, outcome.status, reason)
            return outcome
        return self._deliver(reminder, user, days)

    def _deliver(self, reminder: Reminder, user: User, days: int) -> ReminderOutcome:
        try:
            message = email_templates.payment_reminder(
                user.name,
                title=reminder.title,
                amount=reminder.amount,
                due_date=reminder.due_date,
                category=reminder.category,
                days_until_due=days,
            )
            result = self.email_service.send_mail(user.email, message["subject"], message["html"])

            if isinstance(result, Sent):
                reminder.last_sent_at = self.clock()
                self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception("Error sending reminder email", reminder=reminder.id)
            outcome = ReminderOutcome(reminder.id, "error", reason=f"Email sending error: {e}")
            log_reminder_outcome(reminder.id, outcome.status, outcome.reason)
            return outcome

        if not isinstance(result, Sent):
            outcome = ReminderOutcome(reminder.id, "failed", reason="Email sending failed")
            log_reminder_outcome(reminder.id, outcome.status, getattr(result, "reason", None))
            return outcome

        metrics.increment("reminders.sent")
        outcome = ReminderOutcome(reminder.id, "sent", days_until_due=days)
        log_reminder_outcome(reminder.id, outcome.status)
        return outcome
