"""
One-time passcode issuance, verification and redemption.

A code is bound to (owner_key, purpose). Issuing a new code deletes every
unused code for the same pair, so at most one is live. Checking a code is
two-phase: verify() stamps verified_at and hands back the record id,
redeem() consumes the verified record exactly once, optionally running the
account mutation it authorizes inside the same transaction.

Wrong, expired, used and missing codes all look the same to the caller; the
real cause is only written to the audit log.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.config import Settings, settings as default_settings
from app.core.security import generate_otp, otp_matches
from app.helpers.getters import utcnow
from app.helpers.validators import normalize_otp
from app.logging import get_logger
from app.models.otp_token import OtpPurpose, OtpToken
from app.repositories.otp import OtpRepository
from app.services.delivery import OtpDelivery, OtpDeliveryError

logger = get_logger(__name__)

POLICY_ROLLBACK = "rollback"
POLICY_KEEP = "keep"
ISSUE_ATTEMPTS = 2


@dataclass(frozen=True)
class IssuedOtp:
    token_id: int
    code: str
    expires_at: datetime
    delivered: bool = True


@dataclass(frozen=True)
class OtpVerification:
    valid: bool
    handle: Optional[int] = None


@dataclass(frozen=True)
class OtpRedemption:
    ok: bool
    token_id: Optional[int] = None
    user_id: Optional[int] = None


OnRedeem = Callable[[OtpToken], Awaitable[None]]


def normalize_owner_key(owner_key: str) -> str:
    return (owner_key or "").strip().lower()


class OtpManager:
    def __init__(
        self,
        otps: OtpRepository,
        delivery: OtpDelivery,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.otps = otps
        self.db = otps.db
        self.delivery = delivery
        self.settings = settings
        self.clock = clock
        self.ttls = {
            OtpPurpose.PASSWORD_RESET.value: timedelta(minutes=settings.PASSWORD_RESET_OTP_TTL_MINUTES),
            OtpPurpose.REGISTRATION.value: timedelta(minutes=settings.REGISTRATION_OTP_TTL_MINUTES),
        }
        self.redeem_window = timedelta(minutes=settings.OTP_REDEEM_WINDOW_MINUTES)

    def ttl_for(self, purpose: str) -> timedelta:
        return self.ttls[OtpPurpose(purpose).value]

    async def issue(
        self,
        owner_key: str,
        purpose: str,
        ttl: Optional[timedelta] = None,
        user_id: Optional[int] = None,
    ) -> IssuedOtp:
        """
        Replace any pending code for (owner_key, purpose) with a fresh one and deliver it.

        Raises OtpDeliveryError when delivery fails under the rollback policy;
        the new record is deleted first so the user can simply ask again.
        """
        owner_key = normalize_owner_key(owner_key)
        purpose = OtpPurpose(purpose).value
        if ttl is None:
            ttl = self.ttl_for(purpose)
        now = self.clock()
        code = generate_otp(self.settings.OTP_LENGTH)

        token, replaced = await self._replace_pending(owner_key, purpose, code, now, ttl, user_id)

        token_id = token.id
        expires_at = token.expires_at
        logger.audit("OTP issued", email=owner_key, purpose=purpose, replaced=replaced, token_id=token_id)

        ttl_minutes = int(ttl.total_seconds() // 60)
        try:
            await self.delivery.send(owner_key, code, purpose, ttl_minutes)
        except OtpDeliveryError as e:
            if self.settings.OTP_DELIVERY_FAILURE_POLICY == POLICY_KEEP:
                logger.warning("OTP delivery failed, keeping code", email=owner_key, purpose=purpose, error=str(e))
                return IssuedOtp(token_id=token_id, code=code, expires_at=expires_at, delivered=False)

            logger.error(
                "OTP delivery failed, rolling back issuance",
                exc_info=False, email=owner_key, purpose=purpose, error=str(e),
            )
            try:
                await self.otps.delete(token_id)
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                raise
            raise

        return IssuedOtp(token_id=token_id, code=code, expires_at=expires_at)

    async def _replace_pending(
        self,
        owner_key: str,
        purpose: str,
        code: str,
        now: datetime,
        ttl: timedelta,
        user_id: Optional[int],
    ):
        """
        Invalidate and insert in one transaction, serialized per (owner, purpose).

        The partial unique index on live codes rejects an insert that raced
        past the lock; the whole transaction is then replayed once.
        """
        for attempt in range(ISSUE_ATTEMPTS):
            try:
                await self.otps.lock_owner(owner_key, purpose)
                replaced = await self.otps.invalidate_pending(owner_key, purpose)
                token = await self.otps.insert(OtpToken(
                    owner_key=owner_key,
                    user_id=user_id,
                    purpose=purpose,
                    code=code,
                    created_at=now,
                    expires_at=now + ttl,
                ))
                await self.db.commit()
                return token, replaced
            except IntegrityError:
                await self.db.rollback()
                if attempt + 1 == ISSUE_ATTEMPTS:
                    raise
                logger.warning("Concurrent OTP issuance, retrying", email=owner_key, purpose=purpose)
            except SQLAlchemyError:
                await self.db.rollback()
                raise

    async def verify(self, owner_key: str, code, purpose: str) -> OtpVerification:
        owner_key = normalize_owner_key(owner_key)
        purpose = OtpPurpose(purpose).value
        code = normalize_otp(code)
        now = self.clock()

        token = await self.otps.find_active(owner_key, code, purpose, now) if code else None
        if token is None:
            cause = await self._rejection_cause(owner_key, purpose, now)
            logger.audit("OTP rejected", email=owner_key, purpose=purpose, cause=cause, phase="verify")
            return OtpVerification(valid=False)

        try:
            await self.otps.mark_verified(token.id, now)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.audit("OTP verified", email=owner_key, purpose=purpose, token_id=token.id)
        return OtpVerification(valid=True, handle=token.id)

    async def redeem(
        self,
        handle: Optional[int],
        owner_key: str,
        code,
        purpose: str,
        on_redeem: Optional[OnRedeem] = None,
    ) -> OtpRedemption:
        """
        Consume a verified code exactly once.

        ``handle`` is the id returned by verify(); without it the newest
        verified record matching the code is used. ``on_redeem`` runs inside
        the same transaction as the used flag: if it raises, both roll back
        and the code stays redeemable.
        """
        owner_key = normalize_owner_key(owner_key)
        purpose = OtpPurpose(purpose).value
        code = normalize_otp(code)
        now = self.clock()

        if handle is not None:
            token = await self.otps.get(handle)
        elif code:
            token = await self.otps.find_verified(owner_key, code, purpose)
        else:
            token = None

        cause = self._redeem_rejection(token, owner_key, code, purpose, now)
        if cause:
            logger.audit("OTP rejected", email=owner_key, purpose=purpose, cause=cause, phase="redeem")
            return OtpRedemption(ok=False)

        try:
            if not await self.otps.mark_used(token.id, now):
                await self.db.rollback()
                logger.audit("OTP rejected", email=owner_key, purpose=purpose, cause="used", phase="redeem")
                return OtpRedemption(ok=False)
            if on_redeem is not None:
                await on_redeem(token)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.audit("OTP redeemed", email=owner_key, purpose=purpose, token_id=token.id)
        return OtpRedemption(ok=True, token_id=token.id, user_id=token.user_id)

    async def verify_and_redeem(
        self,
        owner_key: str,
        code,
        purpose: str,
        on_redeem: Optional[OnRedeem] = None,
    ) -> OtpRedemption:
        """Single-step check used when the client does not do a separate verify call."""
        verification = await self.verify(owner_key, code, purpose)
        if not verification.valid:
            return OtpRedemption(ok=False)
        return await self.redeem(verification.handle, owner_key, code, purpose, on_redeem=on_redeem)

    def _redeem_rejection(
        self,
        token: Optional[OtpToken],
        owner_key: str,
        code: str,
        purpose: str,
        now: datetime,
    ) -> Optional[str]:
        if token is None or token.owner_key != owner_key or token.purpose != purpose:
            return "none"
        if token.is_used:
            return "used"
        if token.verified_at is None:
            return "not_verified"
        if not code or not otp_matches(token.code, code):
            return "wrong_code"
        if now > token.verified_at + self.redeem_window:
            return "redeem_window_elapsed"
        return None

    async def _rejection_cause(self, owner_key: str, purpose: str, now: datetime) -> str:
        latest = await self.otps.find_latest(owner_key, purpose)
        if latest is None:
            return "none"
        if latest.is_used:
            return "used"
        if latest.expires_at <= now:
            return "expired"
        return "wrong_code"
