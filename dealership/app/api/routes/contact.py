from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from dealership.app.api.deps import get_mailer
from dealership.app.schemas import ContactMessage, DriveRequest, FeedbackRequest
from dealership.app.services.mailer import MailError, Mailer, MailNotConfiguredError

router = APIRouter()


def _mail_failure(exc: MailError) -> HTTPException:
    if isinstance(exc, MailNotConfiguredError):
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


@router.post("/test-drive")
async def request_test_drive(payload: DriveRequest, mailer: Mailer = Depends(get_mailer)):
    try:
        result = await mailer.send_test_drive_request(payload)
    except MailError as exc:
        raise _mail_failure(exc) from exc
    return {"success": True, **result}


@router.post("/message")
async def send_message(payload: ContactMessage, mailer: Mailer = Depends(get_mailer)):
    try:
        result = await mailer.send_contact_message(payload)
    except MailError as exc:
        raise _mail_failure(exc) from exc
    return {"success": True, "email_id": result.get("id")}


@router.post("/feedback")
async def send_feedback(payload: FeedbackRequest, mailer: Mailer = Depends(get_mailer)):
    try:
        result = await mailer.send_feedback(payload)
    except MailError as exc:
        raise _mail_failure(exc) from exc
    return {"success": True, "message": "Feedback succesvol verzonden", "email_id": result.get("id")}
