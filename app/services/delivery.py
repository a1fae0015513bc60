"""
OTP delivery collaborators.

A backend either hands the code to its transport or raises OtpDeliveryError.
Which backend runs is configuration (OTP_DELIVERY_BACKEND), not a branch on
the runtime environment.
"""
from typing import Dict, Type

from kombu.exceptions import KombuError
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings, settings as default_settings
from app.logging import get_logger
from app.services.email import EmailSendError, build_otp_message, send_email_smtp

logger = get_logger("auth")


class OtpDeliveryError(Exception):
    """The code could not be handed to the user."""


class OtpDelivery:
    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    async def send(self, owner_key: str, code: str, purpose: str, ttl_minutes: int) -> None:
        raise NotImplementedError


class ConsoleOtpDelivery(OtpDelivery):
    """Development backend: the code only goes to the log."""

    async def send(self, owner_key: str, code: str, purpose: str, ttl_minutes: int) -> None:
        logger.info(f"Simulated OTP email: {code}", email=owner_key, purpose=purpose, ttl_minutes=ttl_minutes)


class SmtpOtpDelivery(OtpDelivery):
    """Sends inside the request, so a transport failure reaches the caller."""

    async def send(self, owner_key: str, code: str, purpose: str, ttl_minutes: int) -> None:
        subject, body = build_otp_message(code, purpose, ttl_minutes, app_name=self.settings.APP_NAME)
        try:
            await run_in_threadpool(send_email_smtp, owner_key, subject, body, self.settings)
        except EmailSendError as e:
            raise OtpDeliveryError(str(e)) from e


class CeleryOtpDelivery(OtpDelivery):
    """
    Queues the email on the Celery worker. Only a broker failure is visible
    here; SMTP failures are retried and logged by the worker.
    """

    async def send(self, owner_key: str, code: str, purpose: str, ttl_minutes: int) -> None:
        from app.mycelery.worker import send_otp_email

        try:
            send_otp_email.delay(owner_key, code, purpose, ttl_minutes)
        except (KombuError, OSError) as e:
            raise OtpDeliveryError(f"Could not queue OTP email: {e}") from e


DELIVERY_BACKENDS: Dict[str, Type[OtpDelivery]] = {
    "console": ConsoleOtpDelivery,
    "smtp": SmtpOtpDelivery,
    "celery": CeleryOtpDelivery,
}


def get_otp_delivery(settings: Settings = default_settings) -> OtpDelivery:
    try:
        backend = DELIVERY_BACKENDS[settings.OTP_DELIVERY_BACKEND]
    except KeyError:
        raise ValueError(f"Unknown OTP_DELIVERY_BACKEND: {settings.OTP_DELIVERY_BACKEND!r}")
    return backend(settings)
