import csv
import io
import logging

from sqlalchemy.orm import Session

from jobboard.models import ActivationCode, User
from jobboard.services.validation import ValidationError
from jobboard.utils.security import generate_activation_code
from jobboard.utils.timeutil import now_str

logger = logging.getLogger(__name__)

MAX_CODES_PER_BATCH = 100
EXPORT_COLUMNS = ["code", "validity_days", "created_at"]


def generate_codes(db: Session, prefix: str, count: int, validity_days: int) -> list[ActivationCode]:
    errors = []
    prefix = prefix.strip().upper()
    if not prefix:
        errors.append("Enter a code prefix")
    if count <= 0 or count > MAX_CODES_PER_BATCH:
        errors.append(f"Code count must be between 1 and {MAX_CODES_PER_BATCH}")
    if validity_days <= 0:
        errors.append("Validity must be at least one day")
    if errors:
        raise ValidationError(errors)

    existing = {c for (c,) in db.query(ActivationCode.code).filter(ActivationCode.code.like(f"{prefix}-%"))}
    created = []
    now = now_str()
    while len(created) < count:
        code = generate_activation_code(prefix)
        if code in existing:
            continue
        existing.add(code)
        row = ActivationCode(
            code=code,
            is_active=True,
            is_used=False,
            validity_days=validity_days,
            created_at=now,
        )
        db.add(row)
        created.append(row)
    db.commit()
    logger.info("Generated %d %s activation codes valid for %d days", count, prefix, validity_days)
    return created


def code_page(db: Session, q: str | None, page: int, per_page: int) -> tuple[list[ActivationCode], int]:
    query = db.query(ActivationCode)
    if q:
        query = query.filter(ActivationCode.code.ilike(f"%{q}%"))
    total = query.count()
    codes = (
        query.order_by(ActivationCode.created_at.desc(), ActivationCode.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return codes, total


def redeemed_by(db: Session, codes: list[ActivationCode]) -> dict[int, str]:
    user_ids = {c.user_id for c in codes if c.user_id}
    if not user_ids:
        return {}
    users = db.query(User).filter(User.id.in_(user_ids)).all()
    return {u.id: f"{u.username} ({u.account})" for u in users}


def export_unused_csv(db: Session) -> str:
    codes = (
        db.query(ActivationCode)
        .filter(ActivationCode.is_active.is_(True), ActivationCode.is_used.is_(False))
        .order_by(ActivationCode.created_at.desc(), ActivationCode.id.desc())
        .all()
    )
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for code in codes:
        writer.writerow([code.code, code.validity_days, code.created_at])
    return output.getvalue()
