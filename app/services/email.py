import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Tuple

from app.core.config import Settings, settings as default_settings
from app.logging import get_logger
from app.models.otp_token import OtpPurpose

logger = get_logger("auth")

SUBJECTS = {
    OtpPurpose.PASSWORD_RESET.value: "Password Reset OTP",
    OtpPurpose.REGISTRATION.value: "Email Verification OTP",
}
HEADINGS = {
    OtpPurpose.PASSWORD_RESET.value: "Password Reset OTP",
    OtpPurpose.REGISTRATION.value: "DentaNet Registration OTP",
}


class EmailSendError(Exception):
    pass


def build_otp_message(code: str, purpose: str, ttl_minutes: int, app_name: str = "DentaNet LMS") -> Tuple[str, str]:
    subject = f"{SUBJECTS.get(purpose, 'Verification Code')} - {app_name}"
    body = f"""
    <html>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #1d76d2;">{HEADINGS.get(purpose, 'Verification Code')}</h2>
            <p>Your OTP code is:</p>
            <div style="background:#f0f9ff;padding:18px;text-align:center;border-radius:10px;">
                <h1 style="letter-spacing:8px;margin:0;color:#1d76d2;">{code}</h1>
            </div>
            <p><b>Expires in {ttl_minutes} minutes.</b></p>
            <p>If you did not request this code, ignore this email.</p>
        </body>
    </html>
    """
    return subject, body


def send_email_smtp(to: str, subject: str, html: str, settings: Settings = default_settings) -> None:
    """Blocking SMTP send. Raises EmailSendError on any configuration or transport failure."""
    if not settings.SMTP_USERNAME or not settings.SMTP_PASSWORD:
        logger.error("SMTP credentials not configured", exc_info=False)
        raise EmailSendError("SMTP credentials not configured")

    from_email = settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME
    msg = MIMEMultipart()
    msg['From'] = f"{settings.SMTP_FROM_NAME} <{from_email}>"
    msg['To'] = to
    msg['Subject'] = subject
    msg.attach(MIMEText(html, 'html'))

    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.sendmail(from_email, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise EmailSendError(str(e)) from e

    logger.info("Email sent", email=to, subject=subject)
