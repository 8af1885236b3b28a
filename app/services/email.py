import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from html import escape
import os
from app.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Service for handling automated email notifications"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.email_from = settings.EMAIL_FROM

        # Path to templates
        self.template_dir = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates", "emails")

    def _get_template(self, template_name):
        """Read an HTML template from file"""
        try:
            with open(os.path.join(self.template_dir, f"{template_name}.html"), "r") as f:
                return f.read()
        except OSError as e:
            logger.warning("Error reading email template %s: %s", template_name, e)
            return None

    def _deliver(self, msg):
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=settings.DB_TIMEOUT_MS / 1000) as server:
            server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)

    async def send_email(self, to_email, subject, html_content):
        """General method to send an email (Mocked if no credentials)"""
        if not self.smtp_user or not self.smtp_password:
            logger.info("MOCK EMAIL to %s: %s (HTML length %d)", to_email, subject, len(html_content))
            return True

        msg = MIMEMultipart()
        msg['From'] = self.email_from
        msg['To'] = to_email
        msg['Subject'] = subject
        msg.attach(MIMEText(html_content, 'html'))

        try:
            await asyncio.to_thread(self._deliver, msg)
            return True
        except (smtplib.SMTPException, OSError) as e:
            # a failed email never fails the booking action that triggered it
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False

    async def send_booking_status_notification(self, booking, recipient_email):
        """Send notification for booking approval/rejection"""
        if not recipient_email:
            return False

        status = booking.status.value
        meal_date = datetime.strptime(booking.booking_date, "%Y-%m-%d")
        meal_label = "Veg" if booking.meal_type.value == "veg" else "Non-Veg"

        template = self._get_template("booking_status")
        if not template:
            return await self.send_email(
                recipient_email,
                f"Meal Booking {status.capitalize()}",
                f"Your meal booking for {meal_date.strftime('%d %b')} has been {status}."
            )

        content = template.replace("{{name}}", escape(booking.employee_name))
        content = content.replace("{{status}}", status)
        content = content.replace("{{status_class}}", f"status-{status}")
        content = content.replace("{{date}}", meal_date.strftime("%A, %d %b %Y"))
        content = content.replace("{{meal_type}}", meal_label)
        content = content.replace("{{receipt_number}}", escape(booking.receipt_number))
        content = content.replace("{{dashboard_url}}", f"{settings.FRONTEND_URL}/my-bookings")
        content = content.replace("{{year}}", str(datetime.now().year))

        return await self.send_email(
            recipient_email,
            f"Meal Booking {status.capitalize()}: {meal_date.strftime('%d %b')}",
            content
        )


email_service = EmailService()
