from app.mycelery.app import celery_app
from app.logging import get_logger
from app.services.email import EmailSendError, build_otp_message, send_email_smtp

logger = get_logger("auth")


@celery_app.task(name="send_otp_email", bind=True, max_retries=3)
def send_otp_email(self, email: str, code: str, purpose: str, ttl_minutes: int):
    """Sends an OTP email over SMTP, retrying with exponential backoff."""
    subject, body = build_otp_message(code, purpose, ttl_minutes)
    try:
        send_email_smtp(email, subject, body)
    except EmailSendError as e:
        logger.error("Failed to send OTP email", exc_info=False, email=email, purpose=purpose, error=str(e))
        # each retry doubles the wait: 1s, 2s, 4s
        raise self.retry(exc=e, countdown=2 ** self.request.retries)
    return {"sent": True, "email": email}
