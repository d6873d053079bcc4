import logging
import math
import time
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.models import ActivationCode, UserInfo
from jobboard.utils.timeutil import format_ts, parse_datetime, utcnow

logger = logging.getLogger(__name__)

COMMON_USER = "common_user"
TEMP_USER = "temp_user"
OFFICIAL_USER = "official_user"
MEMBER_TYPES = (TEMP_USER, OFFICIAL_USER)

TRIAL_CODE_PREFIX = "TEMP"


class ActivationError(ValueError):
    pass


class ActivationRateLimitError(ActivationError):
    pass


def resolve_tier(info: UserInfo | None, now: datetime | None = None) -> str:
    if info is None or info.membership_type not in MEMBER_TYPES:
        return COMMON_USER
    end = parse_datetime(info.membership_end_date)
    if end is None or end <= (now or utcnow()):
        return COMMON_USER
    return info.membership_type


def remaining_days(info: UserInfo | None, now: datetime | None = None) -> int:
    now = now or utcnow()
    if resolve_tier(info, now) == COMMON_USER:
        return 0
    end = parse_datetime(info.membership_end_date)
    return max(0, math.ceil((end - now).total_seconds() / 86400))


def is_member(tier: str) -> bool:
    return tier in MEMBER_TYPES


def category_view_limit(tier: str) -> int | None:
    """Jobs a user may see per category listing; None means unlimited."""
    return None if is_member(tier) else settings.common_view_limit


def quick_view_limit(tier: str) -> int:
    return settings.member_quick_view_limit if is_member(tier) else settings.common_view_limit


def membership_status(info: UserInfo | None, now: datetime | None = None) -> dict:
    now = now or utcnow()
    tier = resolve_tier(info, now)
    return {
        "membership_type": tier,
        "is_member": is_member(tier),
        "membership_code": info.membership_code if info else None,
        "membership_start_date": info.membership_start_date if info and is_member(tier) else None,
        "membership_end_date": info.membership_end_date if info and is_member(tier) else None,
        "remaining_days": remaining_days(info, now),
    }


def apply_code(db: Session, user_id: int, code: ActivationCode, now: datetime | None = None) -> UserInfo:
    """Extend or start a membership from an unused code and mark it used.

    Active memberships are extended from their end date. An active official
    membership keeps its tier when a trial code is redeemed.
    """
    now = now or utcnow()
    info = db.query(UserInfo).filter(UserInfo.user_id == user_id).first()
    if info is None:
        info = UserInfo(user_id=user_id, membership_type=COMMON_USER, created_at=format_ts(now))
        db.add(info)

    new_type = TEMP_USER if code.code.upper().startswith(TRIAL_CODE_PREFIX) else OFFICIAL_USER
    current = resolve_tier(info, now)

    if is_member(current):
        base = parse_datetime(info.membership_end_date)
        if current == OFFICIAL_USER:
            new_type = OFFICIAL_USER
    else:
        base = now
        info.membership_start_date = format_ts(now)

    info.membership_type = new_type
    info.membership_code = code.code
    info.membership_end_date = format_ts(base + timedelta(days=code.validity_days))
    info.updated_at = format_ts(now)

    code.is_used = True
    code.user_id = user_id
    code.used_at = format_ts(now)
    db.commit()
    logger.info("User %s is now %s until %s", user_id, info.membership_type, info.membership_end_date)
    return info


def grant_trial(db: Session, user_id: int) -> UserInfo | None:
    code = (
        db.query(ActivationCode)
        .filter(ActivationCode.code.like(f"{TRIAL_CODE_PREFIX}%"))
        .filter(ActivationCode.is_active.is_(True), ActivationCode.is_used.is_(False))
        .order_by(ActivationCode.id)
        .first()
    )
    if code is None:
        logger.info("No trial activation code left for user %s", user_id)
        return None
    return apply_code(db, user_id, code)


class MembershipService:
    def __init__(self, clock=time.time):
        self._clock = clock
        self._attempts: dict[int, list[float]] = {}  # user_id -> attempt times

    def _check_rate_limit(self, user_id: int):
        now = self._clock()
        window_start = now - 3600
        attempts = [t for t in self._attempts.get(user_id, []) if t > window_start]
        if len(attempts) >= settings.activation_attempts_per_hour:
            self._attempts[user_id] = attempts
            retry_after = int(attempts[0] + 3600 - now) + 1
            raise ActivationRateLimitError(
                f"Too many activation attempts. Try again in {retry_after} seconds"
            )
        attempts.append(now)
        self._attempts[user_id] = attempts

    def redeem(self, db: Session, user_id: int, code: str) -> UserInfo:
        self._check_rate_limit(user_id)
        normalized = code.strip().upper()
        if not normalized:
            raise ActivationError("Enter an activation code")

        row = db.query(ActivationCode).filter(ActivationCode.code == normalized).first()
        if row is None:
            raise ActivationError("Activation code not found")
        if not row.is_active:
            raise ActivationError("This activation code has been disabled")
        if row.is_used:
            raise ActivationError("This activation code has already been used")
        return apply_code(db, user_id, row)

    def reset(self):
        self._attempts.clear()


membership_service = MembershipService()
