from datetime import datetime
from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from ticketbooth.errors import DeliveryError
from ticketbooth.services import email as email_module
from ticketbooth.services.email import EmailService, format_price, render_ticket_email

pytestmark = pytest.mark.asyncio

RECEIPT = {
    "attendee_name": "Jane <Smith>",
    "ticket_code": "TKT-ABCDEF123456",
    "ticket_type": "VIP",
    "price": 15000,
    "expiry_date": datetime(2030, 1, 31, 12, 0),
}


@pytest.fixture
def smtp_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(email_module.settings, "smtp_user", "mailer")
    monkeypatch.setattr(email_module.settings, "smtp_password", "secret")


async def test_receipt_contains_ticket_details() -> None:
    html = render_ticket_email(**RECEIPT)

    assert "TKT-ABCDEF123456" in html
    assert "Jane &lt;Smith&gt;" in html
    assert format_price(15000) in html
    assert "31 Jan 2030" in html


async def test_receipt_without_expiry() -> None:
    html = render_ticket_email(**{**RECEIPT, "expiry_date": None})
    assert "No expiry" in html


async def test_unconfigured_smtp_is_a_delivery_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(email_module.settings, "smtp_user", "")

    with patch("aiosmtplib.send", new_callable=AsyncMock) as send:
        with pytest.raises(DeliveryError):
            await EmailService.send("jane@example.com", RECEIPT)

    send.assert_not_called()


async def test_send_receipt(smtp_configured: None) -> None:
    with patch("aiosmtplib.send", new_callable=AsyncMock) as send:
        await EmailService.send("jane@example.com", RECEIPT)

    message = send.call_args.args[0]
    assert message["To"] == "jane@example.com"
    assert message["Subject"] == "Your Ticket Details"
    assert send.call_args.kwargs["username"] == "mailer"


async def test_smtp_failure_raises_delivery_error(smtp_configured: None) -> None:
    with patch("aiosmtplib.send", new_callable=AsyncMock, side_effect=aiosmtplib.SMTPException("refused")):
        with pytest.raises(DeliveryError):
            await EmailService.send("jane@example.com", RECEIPT)
