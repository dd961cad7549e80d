import aiosmtplib
from datetime import datetime
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from markupsafe import escape
from typing import Optional
import logging

from ticketbooth.config import get_settings
from ticketbooth.errors import DeliveryError

settings = get_settings()
logger = logging.getLogger(__name__)


def format_price(amount: int) -> str:
    return f"${amount / 100:.2f}"


def render_ticket_email(
    attendee_name: str,
    ticket_code: str,
    ticket_type: str,
    price: int,
    expiry_date: Optional[datetime]
) -> str:
    valid_until = expiry_date.strftime("%d %b %Y") if expiry_date else "No expiry"

    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; background: #f4f4f4; padding: 20px;">
        <div style="background: white; padding: 30px; border-radius: 8px; max-width: 500px; margin: auto;">
            <h1>Your Ticket</h1>
            <p>Thank you for your purchase, <strong>{escape(attendee_name)}</strong>!</p>
            <div style="font-size: 24px; font-weight: bold; background: #f0f0f0; padding: 15px;
                        text-align: center; border-radius: 4px; letter-spacing: 2px;">
                {ticket_code}
            </div>
            <ul style="margin: 20px 0;">
                <li><strong>Type:</strong> {escape(ticket_type)}</li>
                <li><strong>Price:</strong> {format_price(price)}</li>
                <li><strong>Valid Until:</strong> {valid_until}</li>
            </ul>
            <p>Please present this ticket code at the event entrance.</p>
            <p style="margin-top: 20px; color: #666; font-size: 12px;">
                This is an automated email. Do not reply.
            </p>
        </div>
    </body>
    </html>
    """


class EmailService:
    @staticmethod
    async def send_email(to_email: str, subject: str, html_content: str) -> None:
        """Send an email using SMTP. Raises DeliveryError when it cannot be sent."""
        if not settings.smtp_user or not settings.smtp_password:
            logger.warning("SMTP not configured, cannot send email to %s", to_email)
            raise DeliveryError("SMTP is not configured")

        message = MIMEMultipart("alternative")
        message["From"] = settings.mail_from
        message["To"] = to_email
        message["Subject"] = subject
        message.attach(MIMEText(html_content, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_user,
                password=settings.smtp_password,
                start_tls=True
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            raise DeliveryError(str(e)) from e

    @staticmethod
    async def send(to_email: str, template_data: dict) -> None:
        """Send the ticket receipt described by ``template_data``."""
        html_content = render_ticket_email(
            attendee_name=template_data["attendee_name"],
            ticket_code=template_data["ticket_code"],
            ticket_type=template_data["ticket_type"],
            price=template_data["price"],
            expiry_date=template_data.get("expiry_date")
        )
        await EmailService.send_email(to_email, "Your Ticket Details", html_content)
