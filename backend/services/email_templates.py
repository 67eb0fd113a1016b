"""HTML email templates."""

from datetime import datetime

DASHBOARD_URL = "https://moneywise.example.com/dashboard"


def welcome(name: str) -> dict:
    return {
        "subject": "Welcome to MoneyWise!",
        "html": f"""
      <div style="font-family: Arial, sans-serif; padding: 20px;">
        <h1>Welcome to MoneyWise, {name}!</h1>
        <p>Thank you for joining our community of smart financial planners.</p>
        <p>Get started by:</p>
        <ul>
          <li>Setting up your first budget</li>
          <li>Adding your accounts</li>
          <li>Exploring our financial insights</li>
        </ul>
        <p>If you have any questions, feel free to reach out to our support team.</p>
      </div>
    """,
    }


def urgency(days_until_due: int) -> tuple[str, str]:
    """Label and badge color for a reminder due in the given number of days."""
    if days_until_due < 0:
        return "Overdue", "#B91C1C"
    if days_until_due <= 1:
        return ("Due Today!" if days_until_due == 0 else "Due Tomorrow!"), "#EF4444"
    if days_until_due <= 3:
        return "Due Soon", "#F59E0B"
    return "Upcoming", "#2563EB"


def payment_reminder(name: str, title: str, amount: float, due_date: datetime,
                     category: str, days_until_due: int) -> dict:
    urgency_text, urgency_color = urgency(days_until_due)
    formatted_date = f"{due_date:%A, %B} {due_date.day}, {due_date.year}"
    if days_until_due < 0:
        overdue = -days_until_due
        period = "1 day" if overdue == 1 else f"{overdue} days"
        headline = f"Payment Overdue by {period}"
        due_sentence = f"This payment was due <strong>{period} ago</strong>."
    elif days_until_due == 0:
        headline = "Payment Due Today"
        due_sentence = "This payment is due <strong>today</strong>."
    else:
        headline = f"Payment Due in {days_until_due} days"
        due_sentence = f"This payment is due in <strong>{days_until_due} days</strong>."

    return {
        "subject": f"{urgency_text}: {title} {headline}",
        "html": f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #e5e7eb; border-radius: 8px;">
          <div style="text-align: center; margin-bottom: 20px;">
            <h1 style="color: #111827; font-size: 24px; margin-bottom: 4px;">Payment Reminder</h1>
            <div style="background-color: {urgency_color}; color: white; padding: 8px 16px; border-radius: 16px; display: inline-block; font-weight: bold;">
              {urgency_text}
            </div>
          </div>
          <div style="background-color: #f9fafb; border-radius: 8px; padding: 16px; margin-bottom: 20px;">
            <h2 style="color: #111827; font-size: 20px; margin-top: 0;">{title}</h2>
            <div style="display: flex; margin-bottom: 12px;">
              <div style="width: 50%; color: #4b5563;">Amount</div>
              <div style="width: 50%; font-weight: bold; color: #111827;">${amount:.2f}</div>
            </div>
            <div style="display: flex; margin-bottom: 12px;">
              <div style="width: 50%; color: #4b5563;">Due Date</div>
              <div style="width: 50%; font-weight: bold; color: #111827;">{formatted_date}</div>
            </div>
            <div style="display: flex;">
              <div style="width: 50%; color: #4b5563;">Category</div>
              <div style="width: 50%; font-weight: bold; color: #111827;">{category}</div>
            </div>
          </div>
          <p style="color: #4b5563; margin-bottom: 24px;">
            Hi {name}, this is a friendly reminder about your upcoming payment.
            {due_sentence}
          </p>
          <div style="text-align: center;">
            <a href="{DASHBOARD_URL}" style="background-color: #2563EB; color: white; padding: 12px 24px; border-radius: 6px; text-decoration: none; display: inline-block; font-weight: bold;">
              View in Dashboard
            </a>
          </div>
          <div style="margin-top: 32px; padding-top: 16px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; text-align: center;">
            <p>MoneyWise - Your Personal Finance Assistant</p>
            <p>If you would like to modify your notification settings, please visit your profile settings.</p>
          </div>
        </div>
      """,
    }
