import calendar
import csv
import io
import logging
from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from jobboard.models import Category, Job, StatisticSnapshot, User, UserAction
from jobboard.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

PERIODS = ("week", "month", "year")

EXPORT_COLUMNS = [
    "date", "total_users", "active_users", "total_jobs",
    "active_jobs", "total_applications", "total_favorites",
]


def calculate_statistics(db: Session) -> dict:
    total_users = db.query(func.count(User.id)).scalar() or 0
    active_users = db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
    total_jobs = db.query(func.count(Job.id)).scalar() or 0
    active_jobs = db.query(func.count(Job.id)).filter(Job.is_active.is_(True)).scalar() or 0

    total_applications = 0
    total_favorites = 0
    for favorites, applications in db.query(UserAction.favorite_job_ids, UserAction.application_job_ids):
        total_favorites += len(favorites or [])
        total_applications += len(applications or [])

    top = (
        db.query(Category)
        .order_by(Category.active_job_count.desc(), Category.id)
        .limit(5)
        .all()
    )
    return {
        "total_users": total_users,
        "active_users": active_users,
        "total_jobs": total_jobs,
        "active_jobs": active_jobs,
        "total_applications": total_applications,
        "total_favorites": total_favorites,
        "popular_categories": [
            {"id": c.id, "category": c.category, "active_job_count": c.active_job_count}
            for c in top
        ],
    }


def period_start(today: date, period: str) -> date:
    if period == "week":
        return today - timedelta(days=7)
    if period == "month":
        year, month = (today.year, today.month - 1) if today.month > 1 else (today.year - 1, 12)
        day = min(today.day, calendar.monthrange(year, month)[1])
        return date(year, month, day)
    if period == "year":
        if today.month == 2 and today.day == 29:
            return date(today.year - 1, 2, 28)
        return date(today.year - 1, today.month, today.day)
    raise ValueError(f"Invalid period {period!r}. Must be one of: {', '.join(PERIODS)}")


def get_history(db: Session, period: str, today: date | None = None) -> list[StatisticSnapshot]:
    """Snapshots taken since the start of the period, newest first."""
    start = period_start(today or utcnow().date(), period)
    return (
        db.query(StatisticSnapshot)
        .filter(StatisticSnapshot.stat_date >= start.isoformat())
        .order_by(StatisticSnapshot.stat_date.desc())
        .all()
    )


def growth_percent(current: int, before: int) -> float:
    if before <= 0:
        return 0.0
    return round((current - before) / before * 100, 1)


def record_daily_snapshot(db: Session, stats: dict, today: date | None = None) -> bool:
    """Store today's figures unless a snapshot for today already exists."""
    stat_date = (today or utcnow().date()).isoformat()
    exists = db.query(StatisticSnapshot.id).filter(StatisticSnapshot.stat_date == stat_date).first()
    if exists:
        return False
    db.add(StatisticSnapshot(
        stat_date=stat_date,
        total_users=stats["total_users"],
        active_users=stats["active_users"],
        total_jobs=stats["total_jobs"],
        active_jobs=stats["active_jobs"],
        total_applications=stats["total_applications"],
        total_favorites=stats["total_favorites"],
    ))
    db.commit()
    logger.info("Recorded statistics snapshot for %s", stat_date)
    return True


def build_report(db: Session, stats: dict, period: str) -> dict:
    history = get_history(db, period)
    user_growth = job_growth = 0.0
    if history:
        oldest = history[-1]
        user_growth = growth_percent(stats["total_users"], oldest.total_users)
        job_growth = growth_percent(stats["total_jobs"], oldest.total_jobs)
    return {
        "period": period,
        "current": {**stats, "user_growth": user_growth, "job_growth": job_growth},
        "history": [
            {
                "stat_date": s.stat_date,
                "total_users": s.total_users,
                "active_users": s.active_users,
                "total_jobs": s.total_jobs,
                "active_jobs": s.active_jobs,
                "total_applications": s.total_applications,
                "total_favorites": s.total_favorites,
            }
            for s in history
        ],
    }


def export_history_csv(history: list[dict]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for row in history:
        writer.writerow([
            row["stat_date"], row["total_users"], row["active_users"], row["total_jobs"],
            row["active_jobs"], row["total_applications"], row["total_favorites"],
        ])
    return output.getvalue()
