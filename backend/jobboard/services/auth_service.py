import logging
import random
import re
import time

from sqlalchemy import text
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.models import Admin, User
from jobboard.services.membership_service import grant_trial
from jobboard.services.validation import ValidationError
from jobboard.utils.security import generate_token, hash_password, verify_password
from jobboard.utils.timeutil import now_str

logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ADMIN = "admin"

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_PASSWORD_LENGTH = 6


class AccountExistsError(ValueError):
    pass


def registration_errors(username: str, account: str, password: str) -> list[str]:
    errors = []
    if not username.strip():
        errors.append("Enter a username")
    if not account.strip():
        errors.append("Enter an e-mail address")
    elif not _EMAIL_RE.match(account.strip()):
        errors.append("Enter a valid e-mail address")
    if not password.strip():
        errors.append("Enter a password")
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return errors


class AuthService:
    def __init__(self):
        self._sessions: dict[str, dict] = {}  # token -> {role, subject_id, expires_at}

    def _cleanup_expired(self):
        now = time.time()
        self._sessions = {t: s for t, s in self._sessions.items() if s["expires_at"] > now}

    def _issue(self, role: str, subject_id: int) -> dict:
        token = generate_token()
        self._sessions[token] = {
            "role": role,
            "subject_id": subject_id,
            "expires_at": time.time() + settings.session_ttl_seconds,
        }
        return {"token": token, "role": role, "expires_in_seconds": settings.session_ttl_seconds}

    def validate_token(self, token: str) -> dict | None:
        self._cleanup_expired()
        return self._sessions.get(token)

    def revoke(self, token: str):
        self._sessions.pop(token, None)

    def revoke_subject(self, role: str, subject_id: int):
        self._sessions = {
            t: s for t, s in self._sessions.items()
            if not (s["role"] == role and s["subject_id"] == subject_id)
        }

    def clear(self):
        self._sessions.clear()

    def login_user(self, db: Session, account: str, password: str, throttle_key: str = "login") -> dict | None:
        delay = self._get_throttle_delay(db, throttle_key)
        if delay > 0:
            return {"error": "too_many_attempts", "retry_after_seconds": delay}

        user = (
            db.query(User)
            .filter(User.account == account.strip(), User.is_active.is_(True))
            .first()
        )
        if user is None or not verify_password(user.password_hash, password):
            self._record_failed_attempt(db, throttle_key)
            return None

        self._reset_failed_attempts(db, throttle_key)
        logger.info("User %s logged in", user.id)
        return {**self._issue(ROLE_USER, user.id), "user_id": user.id}

    def login_admin(self, db: Session, username: str, password: str, throttle_key: str = "admin-login") -> dict | None:
        delay = self._get_throttle_delay(db, throttle_key)
        if delay > 0:
            return {"error": "too_many_attempts", "retry_after_seconds": delay}

        admin = (
            db.query(Admin)
            .filter(Admin.admin_username == username.strip(), Admin.is_active.is_(True))
            .first()
        )
        if admin is None or not verify_password(admin.password_hash, password):
            self._record_failed_attempt(db, throttle_key)
            return None

        self._reset_failed_attempts(db, throttle_key)
        logger.info("Admin %s logged in", admin.admin_username)
        return {**self._issue(ROLE_ADMIN, admin.id), "admin_id": admin.id}

    def register_user(self, db: Session, username: str, account: str, password: str) -> User:
        errors = registration_errors(username, account, password)
        if errors:
            raise ValidationError(errors)

        account = account.strip()
        if db.query(User.id).filter(User.account == account).first():
            raise AccountExistsError("This e-mail address is already registered")

        now = now_str()
        user = User(
            username=username.strip(),
            account=account,
            password_hash=hash_password(password),
            icon=random.randint(1, 9),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        grant_trial(db, user.id)
        logger.info("Registered user %s", user.id)
        return user

    def ensure_default_admin(self, db: Session) -> bool:
        if db.query(Admin.id).first():
            return False
        db.add(Admin(
            admin_username=settings.admin_username,
            password_hash=hash_password(settings.admin_password),
            admin_permissions="all",
            is_active=True,
            created_at=now_str(),
        ))
        db.commit()
        logger.warning("Created default admin account %r; change its password", settings.admin_username)
        return True

    def _get_throttle_delay(self, db: Session, key: str) -> float:
        row = db.execute(
            text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        if not row:
            return 0
        failed_attempts = int(row[0])
        last_failed_at = float(row[1])

        if failed_attempts < 3:
            return 0
        if failed_attempts < 5:
            delay = 5.0
        elif failed_attempts < 10:
            delay = 30.0
        else:
            delay = 300.0
        remaining = delay - (time.time() - last_failed_at)
        return max(0, remaining)

    def _record_failed_attempt(self, db: Session, key: str):
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 1, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = failed_attempts + 1,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": time.time()},
        )
        db.commit()

    def _reset_failed_attempts(self, db: Session, key: str):
        db.execute(text("DELETE FROM auth_throttle WHERE key = :key"), {"key": key})
        db.commit()


auth_service = AuthService()
