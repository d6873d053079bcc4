"""Data access facade.

Composes the TTL cache and the change notifications with direct queries.
Every getter reads through the cache; subscriptions registered at start-up
drop the affected cache types when rows change and push fresh data to any
callbacks registered by the caller.
"""
import logging
from typing import Callable

from sqlalchemy import inspect, update
from sqlalchemy.orm import Session

from jobboard.config import settings
from jobboard.models import ActivationCode, Category, Job, JobTag, Tag, User, UserAction
from jobboard.services.cache_service import cache_service
from jobboard.services.notification_service import NotInitializedError, notification_service
from jobboard.services.statistics_service import calculate_statistics
from jobboard.utils.timeutil import now_str

logger = logging.getLogger(__name__)

JOB_STATES = {
    1: "applied",
    2: "written test",
    3: "first interview",
    4: "second interview",
    5: "final interview",
    6: "offer",
}

Callback = Callable[[list], None]


class RecordNotFoundError(LookupError):
    pass


def row_to_dict(obj) -> dict:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


def user_to_dict(user: User) -> dict:
    data = row_to_dict(user)
    data.pop("password_hash", None)
    info = user.info
    data["membership_type"] = info.membership_type if info else "common_user"
    data["membership_end_date"] = info.membership_end_date if info else None
    return data


class DataService:
    def __init__(self):
        self._session_factory = None
        self._initialized = False
        self._callbacks: dict[str, list[Callback]] = {
            "jobs": [],
            "categories": [],
            "tags": [],
            "users": [],
            "activationCodes": [],
            "statistics": [],
            "userActions": [],
        }

    def initialize(self, session_factory, session_class=Session):
        if self._initialized:
            return
        self._session_factory = session_factory
        notification_service.initialize(session_class)
        self._setup_subscriptions()
        self._initialized = True
        logger.info("Data service initialised")

    def shutdown(self):
        notification_service.shutdown()
        for callbacks in self._callbacks.values():
            callbacks.clear()
        self._session_factory = None
        self._initialized = False

    def _require_initialized(self):
        if not self._initialized:
            raise NotInitializedError("Data service is not initialised")

    def _setup_subscriptions(self):
        notification_service.subscribe("job_recruitments", "*", self._on_jobs_change)
        notification_service.subscribe("job_tags", "*", self._on_jobs_change)
        notification_service.subscribe("job_categories", "*", self._on_categories_change)
        notification_service.subscribe("tags", "*", self._on_tags_change)
        notification_service.subscribe("user_actions", "*", self._on_user_actions_change)
        notification_service.subscribe("user_info", "*", self._on_user_info_change)

    # -- change handlers -------------------------------------------------

    def _clear_user_job_lists(self):
        cache_service.clear_type("userFavoriteJobs")
        cache_service.clear_type("userApplicationJobs")

    def _on_jobs_change(self, change: dict):
        cache_service.clear_type("jobs")
        self._clear_user_job_lists()
        if change["table"] == "job_tags":
            cache_service.clear_type("jobTags")
        if self._callbacks["jobs"]:
            self.refresh_jobs()

    def _on_categories_change(self, change: dict):
        cache_service.clear_type("categories")
        if self._callbacks["categories"]:
            self.refresh_categories()

    def _on_tags_change(self, change: dict):
        cache_service.clear_type("tags")
        cache_service.clear_type("tag")
        if self._callbacks["tags"]:
            self.refresh_tags()

    def _on_user_info_change(self, change: dict):
        cache_service.clear_type("users")
        if self._callbacks["users"]:
            self.refresh_users()

    def _on_user_actions_change(self, change: dict):
        cache_service.clear_type("userActions")
        cache_service.clear_type("jobs")
        self._clear_user_job_lists()
        if self._callbacks["userActions"]:
            self.refresh_user_actions()
        if self._callbacks["jobs"]:
            self.refresh_jobs()

    # -- callbacks -------------------------------------------------------

    def _add_callback(self, data_type: str, callback: Callback | None):
        if callback is not None and callback not in self._callbacks[data_type]:
            self._callbacks[data_type].append(callback)

    def _notify(self, data_type: str, data: list):
        for callback in list(self._callbacks[data_type]):
            try:
                callback(data)
            except Exception:
                logger.exception("%s callback failed", data_type)

    def unsubscribe(self, callback: Callback):
        for callbacks in self._callbacks.values():
            if callback in callbacks:
                callbacks.remove(callback)

    def _refresh(self, data_type: str, loader: Callable[[Session], list], db: Session | None) -> list:
        if db is not None:
            data = loader(db)
        else:
            with self._session_factory() as session:
                data = loader(session)
        self._notify(data_type, data)
        return data

    # -- loaders ---------------------------------------------------------

    def _load_jobs(self, db: Session) -> list[dict]:
        jobs = db.query(Job).order_by(Job.created_at.desc(), Job.id.desc()).all()
        data = [row_to_dict(j) for j in jobs]
        cache_service.set("jobs:all", data)
        return data

    def _load_categories(self, db: Session) -> list[dict]:
        data = [row_to_dict(c) for c in db.query(Category).order_by(Category.id).all()]
        cache_service.set("categories:all", data)
        return data

    def _load_tags(self, db: Session) -> list[dict]:
        data = [row_to_dict(t) for t in db.query(Tag).order_by(Tag.tag_type, Tag.tag_name).all()]
        cache_service.set("tags:all", data)
        return data

    def _load_users(self, db: Session) -> list[dict]:
        users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
        data = [user_to_dict(u) for u in users]
        cache_service.set("users:all", data)
        return data

    def _load_activation_codes(self, db: Session) -> list[dict]:
        codes = db.query(ActivationCode).order_by(ActivationCode.created_at.desc(), ActivationCode.id.desc()).all()
        data = [row_to_dict(c) for c in codes]
        cache_service.set("activationCodes:all", data)
        return data

    def _load_statistics(self, db: Session) -> list[dict]:
        data = [calculate_statistics(db)]
        cache_service.set("statistics:all", data)
        return data

    def _load_user_actions(self, db: Session) -> list[dict]:
        data = [row_to_dict(a) for a in db.query(UserAction).order_by(UserAction.user_id).all()]
        cache_service.set("userActions:all", data)
        return data

    # -- getters ---------------------------------------------------------

    def _get(self, data_type: str, key: str, loader, db: Session, callback, force_refresh: bool) -> list:
        self._require_initialized()
        self._add_callback(data_type, callback)
        if not force_refresh:
            cached = cache_service.get(key)
            if cached is not None:
                return cached
        return loader(db)

    def get_jobs(self, db: Session, callback: Callback | None = None, force_refresh: bool = False) -> list[dict]:
        return self._get("jobs", "jobs:all", self._load_jobs, db, callback, force_refresh)

    def get_categories(self, db: Session, callback: Callback | None = None, force_refresh: bool = False) -> list[dict]:
        return self._get("categories", "categories:all", self._load_categories, db, callback, force_refresh)

    def get_tags(self, db: Session, callback: Callback | None = None, force_refresh: bool = False) -> list[dict]:
        return self._get("tags", "tags:all", self._load_tags, db, callback, force_refresh)

    def get_users(self, db: Session, callback: Callback | None = None, force_refresh: bool = False) -> list[dict]:
        return self._get("users", "users:all", self._load_users, db, callback, force_refresh)

    def get_activation_codes(self, db: Session, callback: Callback | None = None, force_refresh: bool = False) -> list[dict]:
        return self._get(
            "activationCodes", "activationCodes:all", self._load_activation_codes, db, callback, force_refresh,
        )

    def get_statistics(self, db: Session, callback: Callback | None = None, force_refresh: bool = False) -> list[dict]:
        return self._get("statistics", "statistics:all", self._load_statistics, db, callback, force_refresh)

    def get_user_actions(self, db: Session, user_id: int, callback: Callback | None = None,
                         force_refresh: bool = False) -> dict:
        self._require_initialized()
        self._add_callback("userActions", callback)
        key = f"userActions:{user_id}"
        if not force_refresh:
            cached = cache_service.get(key)
            if cached is not None:
                return cached
        actions = db.query(UserAction).filter(UserAction.user_id == user_id).first()
        if actions is None:
            data = {"user_id": user_id, "favorite_job_ids": [], "application_job_ids": [], "job_state": []}
        else:
            data = row_to_dict(actions)
        cache_service.set(key, data)
        return data

    # -- refresh ---------------------------------------------------------

    def refresh_jobs(self, db: Session | None = None) -> list[dict]:
        return self._refresh("jobs", self._load_jobs, db)

    def refresh_categories(self, db: Session | None = None) -> list[dict]:
        return self._refresh("categories", self._load_categories, db)

    def refresh_tags(self, db: Session | None = None) -> list[dict]:
        return self._refresh("tags", self._load_tags, db)

    def refresh_users(self, db: Session | None = None) -> list[dict]:
        return self._refresh("users", self._load_users, db)

    def refresh_activation_codes(self, db: Session | None = None) -> list[dict]:
        return self._refresh("activationCodes", self._load_activation_codes, db)

    def refresh_statistics(self, db: Session | None = None) -> list[dict]:
        return self._refresh("statistics", self._load_statistics, db)

    def refresh_user_actions(self, db: Session | None = None) -> list[dict]:
        self._clear_user_job_lists()
        return self._refresh("userActions", self._load_user_actions, db)

    def clear_all_cache(self):
        cache_service.clear_all()

    # -- user actions ----------------------------------------------------

    def _invalidate_user(self, user_id: int):
        for key in (
            f"userActions:{user_id}",
            f"favoriteJobIds:{user_id}",
            f"applicationJobIds:{user_id}",
            f"userFavoriteJobs:{user_id}",
            f"userApplicationJobs:{user_id}",
        ):
            cache_service.clear_key(key)
        cache_service.clear_type("jobs")

    def _get_job(self, db: Session, job_id: int) -> Job:
        job = db.query(Job).filter(Job.id == job_id).first()
        if job is None:
            raise RecordNotFoundError(f"Job {job_id} not found")
        return job

    def _get_or_create_actions(self, db: Session, user_id: int) -> UserAction:
        actions = db.query(UserAction).filter(UserAction.user_id == user_id).first()
        if actions is None:
            now = now_str()
            actions = UserAction(
                user_id=user_id,
                favorite_job_ids=[],
                application_job_ids=[],
                job_state=[],
                created_at=now,
                updated_at=now,
            )
            db.add(actions)
        return actions

    def _id_list(self, db: Session, user_id: int, column: str, key: str) -> list[int]:
        cached = cache_service.get(key)
        if cached is not None:
            return cached
        actions = db.query(UserAction).filter(UserAction.user_id == user_id).first()
        ids = list(getattr(actions, column) or []) if actions else []
        cache_service.set(key, ids, expires_in=5 * 60)
        return ids

    def get_favorite_job_ids(self, db: Session, user_id: int) -> list[int]:
        return self._id_list(db, user_id, "favorite_job_ids", f"favoriteJobIds:{user_id}")

    def get_application_job_ids(self, db: Session, user_id: int) -> list[int]:
        return self._id_list(db, user_id, "application_job_ids", f"applicationJobIds:{user_id}")

    def _jobs_in_order(self, db: Session, ids: list[int], key: str) -> list[dict]:
        cached = cache_service.get(key)
        if cached is not None:
            return cached
        if not ids:
            cache_service.set(key, [])
            return []
        by_id = {j.id: j for j in db.query(Job).filter(Job.id.in_(ids)).all()}
        data = [row_to_dict(by_id[jid]) for jid in ids if jid in by_id]
        cache_service.set(key, data)
        return data

    def get_user_favorite_jobs(self, db: Session, user_id: int) -> list[dict]:
        return self._jobs_in_order(db, self.get_favorite_job_ids(db, user_id), f"userFavoriteJobs:{user_id}")

    def get_user_application_jobs(self, db: Session, user_id: int) -> list[dict]:
        return self._jobs_in_order(db, self.get_application_job_ids(db, user_id), f"userApplicationJobs:{user_id}")

    def toggle_favorite(self, db: Session, user_id: int, job_id: int) -> bool:
        """Flip a favourite; returns whether the job is now a favourite."""
        job = self._get_job(db, job_id)
        actions = self._get_or_create_actions(db, user_id)
        favorites = list(actions.favorite_job_ids or [])
        if job_id in favorites:
            favorites.remove(job_id)
            job.favorites_count = max(0, (job.favorites_count or 0) - 1)
            is_favorite = False
        else:
            favorites.insert(0, job_id)
            job.favorites_count = (job.favorites_count or 0) + 1
            is_favorite = True
        actions.favorite_job_ids = favorites
        actions.updated_at = now_str()
        db.commit()
        self._invalidate_user(user_id)
        return is_favorite

    def add_application(self, db: Session, user_id: int, job_id: int) -> bool:
        job = self._get_job(db, job_id)
        actions = self._get_or_create_actions(db, user_id)
        applications = list(actions.application_job_ids or [])
        if job_id in applications:
            return False
        applications.insert(0, job_id)
        job.applications_count = (job.applications_count or 0) + 1
        actions.application_job_ids = applications
        actions.updated_at = now_str()
        db.commit()
        self._invalidate_user(user_id)
        return True

    def remove_application(self, db: Session, user_id: int, job_id: int) -> bool:
        job = self._get_job(db, job_id)
        actions = self._get_or_create_actions(db, user_id)
        applications = list(actions.application_job_ids or [])
        if job_id not in applications:
            return False
        applications.remove(job_id)
        job.applications_count = max(0, (job.applications_count or 0) - 1)
        actions.application_job_ids = applications
        actions.job_state = [pair for pair in (actions.job_state or []) if pair[0] != job_id]
        actions.updated_at = now_str()
        db.commit()
        self._invalidate_user(user_id)
        return True

    def check_is_favorite(self, db: Session, user_id: int, job_id: int) -> bool:
        return job_id in self.get_favorite_job_ids(db, user_id)

    def check_is_applied(self, db: Session, user_id: int, job_id: int) -> bool:
        return job_id in self.get_application_job_ids(db, user_id)

    def set_job_state(self, db: Session, user_id: int, job_id: int, state_id: int):
        if state_id not in JOB_STATES:
            raise ValueError(f"Invalid job state {state_id}. Must be one of: {sorted(JOB_STATES)}")
        self._get_job(db, job_id)
        actions = self._get_or_create_actions(db, user_id)
        states = [list(pair) for pair in (actions.job_state or [])]
        for pair in states:
            if pair[0] == job_id:
                pair[1] = state_id
                break
        else:
            states.append([job_id, state_id])
        actions.job_state = states
        actions.updated_at = now_str()
        db.commit()
        self._invalidate_user(user_id)

    def get_job_states(self, db: Session, user_id: int) -> dict[int, int]:
        actions = self.get_user_actions(db, user_id)
        return {int(job_id): int(state_id) for job_id, state_id in actions.get("job_state") or []}

    # -- jobs ------------------------------------------------------------

    def increment_job_views(self, db: Session, job_id: int, viewer: str) -> bool:
        """Count a view of an active job unless this viewer was counted within the dedupe window."""
        view_key = f"jobView:{job_id}:{viewer}"
        if cache_service.get(view_key) is not None:
            return False
        cache_service.set(view_key, now_str(), expires_in=settings.view_dedupe_seconds)
        try:
            result = db.execute(
                update(Job)
                .where(Job.id == job_id, Job.is_active.is_(True))
                .values(views_count=Job.views_count + 1)
            )
            db.commit()
        except Exception:
            cache_service.remove(view_key)
            db.rollback()
            raise
        if result.rowcount == 0:
            cache_service.remove(view_key)
            raise RecordNotFoundError(f"Job {job_id} not found")
        cache_service.clear_type("jobs")
        return True

    def get_job_tags(self, db: Session, job_id: int) -> dict | None:
        key = f"jobTags:{job_id}"
        cached = cache_service.get(key)
        if cached is not None:
            return cached
        row = db.query(JobTag).filter(JobTag.job_id == job_id).first()
        if row is None:
            return None
        data = row_to_dict(row)
        cache_service.set(key, data, expires_in=5 * 60)
        return data

    def get_tag_by_id(self, db: Session, tag_id: int) -> dict | None:
        key = f"tag:{tag_id}"
        cached = cache_service.get(key)
        if cached is not None:
            return cached
        tag = db.query(Tag).filter(Tag.id == tag_id).first()
        if tag is None:
            return None
        data = row_to_dict(tag)
        cache_service.set(key, data, expires_in=30 * 60)
        return data


data_service = DataService()
