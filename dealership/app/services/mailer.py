from __future__ import annotations

from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

from loguru import logger

from dealership.app.core.settings import settings
from dealership.app.schemas import ContactMessage, DriveRequest, FeedbackRequest
from dealership.app.services.http_client import AsyncTransport, JSONServiceClient, UpstreamError

BUSINESS_NAME = "Auto Service van der Waals"


class MailError(UpstreamError):
    """Raised when the mail relay rejects or cannot take a message."""


class MailNotConfiguredError(MailError):
    """Raised when no mail relay key is configured."""


class Mailer(JSONServiceClient):
    """Outbound email through the Resend HTTP API.

    Each message is posted exactly once. A failed send is reported to the
    caller and never retried, so a timeout after the relay accepted the
    message cannot produce a duplicate.
    """

    error_class = MailError
    service_name = "Resend"

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: str = "https://api.resend.com",
        sender: Optional[str] = None,
        business_address: Optional[str] = None,
        transport: Optional[AsyncTransport] = None,
        timeout: float = 15.0,
    ):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        super().__init__(base_url, transport=transport, headers=headers, timeout=timeout, max_attempts=1)
        self.sender = sender or settings.mail_from
        self.business_address = business_address or settings.mail_to

    async def send(self, to: List[str], subject: str, html: str, text: Optional[str] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise MailNotConfiguredError("Email service niet beschikbaar")
        payload: Dict[str, Any] = {"from": self.sender, "to": to, "subject": subject, "html": html}
        if text:
            payload["text"] = text
        _, body = await self._request("POST", "/emails", json=payload)
        logger.debug("Email '{}' accepted: {}", subject, body)
        return body if isinstance(body, dict) else {}

    async def send_test_drive_request(self, request: DriveRequest) -> Dict[str, Any]:
        """Notify the business, then confirm to the customer."""
        name = escape(request.name)
        car = escape(f"{request.car_brand} {request.car_model}")
        logger.info("Processing test drive request for {} {}", request.car_brand, request.car_model)

        business = await self.send(
            [self.business_address],
            f"Proefrit aanvraag - {request.car_brand} {request.car_model}",
            (
                "<h2>Nieuwe proefrit aanvraag</h2>"
                f"<p><strong>{name}</strong> wil graag een proefrit plannen met <strong>{car}</strong></p>"
                "<h3>Contactgegevens:</h3><ul>"
                f"<li><strong>Naam:</strong> {name}</li>"
                f"<li><strong>E-mail:</strong> {escape(str(request.email))}</li>"
                f"<li><strong>Telefoon:</strong> {escape(request.phone)}</li>"
                "</ul><p>Neem zo snel mogelijk contact op met de klant.</p>"
            ),
        )
        confirmation = await self.send(
            [str(request.email)],
            "Bevestiging proefrit aanvraag",
            (
                f"<h2>Bedankt voor je aanvraag, {name}!</h2>"
                f"<p>We hebben je aanvraag voor een proefrit met de <strong>{car}</strong> ontvangen.</p>"
                "<p>We nemen zo snel mogelijk contact met je op om een afspraak in te plannen.</p>"
                f"<br><p>Met vriendelijke groet,<br>{BUSINESS_NAME}</p>"
            ),
        )
        return {"business_email": business, "confirmation_email": confirmation}

    async def send_contact_message(self, message: ContactMessage) -> Dict[str, Any]:
        logger.info("Processing contact message from {}", message.email)
        phone = f"<li><strong>Telefoon:</strong> {escape(message.phone)}</li>" if message.phone else ""
        return await self.send(
            [self.business_address],
            f"Nieuw contactbericht van {message.name}",
            (
                "<h2>Nieuw bericht via het contactformulier</h2><ul>"
                f"<li><strong>Naam:</strong> {escape(message.name)}</li>"
                f"<li><strong>E-mail:</strong> {escape(str(message.email))}</li>"
                f"{phone}</ul>"
                f"<p style=\"white-space: pre-wrap;\">{escape(message.message)}</p>"
            ),
            text=message.message,
        )

    async def send_feedback(self, feedback: FeedbackRequest) -> Dict[str, Any]:
        submitted = _local_time(feedback.timestamp)
        body_text = feedback.feedback.strip() or "Geen tekstuele feedback (5 sterren rating)"
        text = (
            "Nieuwe feedback ontvangen van een klant:\n"
            f"Rating: {feedback.rating}/5 sterren\n"
            f"Datum: {submitted}\n"
            f"Feedback:\n{body_text}\n"
            "---\nDeze feedback is verzonden via de review popup op de website."
        )
        if feedback.feedback.strip():
            detail = f"<h3>Feedback:</h3><p style=\"white-space: pre-wrap;\">{escape(feedback.feedback)}</p>"
        else:
            detail = "<p><strong>Positieve review!</strong> Klant gaf 5 sterren zonder aanvullende feedback.</p>"
        logger.info("Sending {}-star feedback", feedback.rating)
        return await self.send(
            [self.business_address],
            f"Nieuwe feedback ontvangen ({feedback.rating}/5 sterren)",
            (
                "<h2>Nieuwe Feedback Ontvangen</h2>"
                f"<p><strong>Rating:</strong> {'&#11088;' * feedback.rating} {feedback.rating}/5 sterren</p>"
                f"<p><strong>Datum:</strong> {submitted}</p>"
                f"{detail}"
            ),
            text=text,
        )


def _local_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(settings.display_timezone)).strftime("%d-%m-%Y %H:%M")
