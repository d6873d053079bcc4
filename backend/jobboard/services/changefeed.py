"""Row-level change capture on SQLAlchemy sessions.

Changes are collected per session during flush and handed to a publisher only
once the surrounding transaction commits; a rollback discards them.
"""
from typing import Callable

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from jobboard.utils.timeutil import now_str

PENDING_KEY = "jobboard_pending_changes"

_publishers: list[Callable[[dict], None]] = []


def _describe(obj, change_event: str) -> dict:
    state = inspect(obj)
    pk = state.mapper.primary_key_from_instance(obj)
    return {
        "table": state.mapper.local_table.name,
        "event": change_event,
        "id": pk[0] if len(pk) == 1 else pk,
        "commit_timestamp": now_str(),
    }


def _after_flush(session: Session, flush_context):
    pending = session.info.setdefault(PENDING_KEY, [])
    for obj in session.new:
        pending.append(_describe(obj, "INSERT"))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            pending.append(_describe(obj, "UPDATE"))
    for obj in session.deleted:
        pending.append(_describe(obj, "DELETE"))


def _after_commit(session: Session):
    pending = session.info.pop(PENDING_KEY, [])
    for change in pending:
        for publish in list(_publishers):
            publish(change)


def _after_rollback(session: Session):
    session.info.pop(PENDING_KEY, None)


def install_change_capture(publisher: Callable[[dict], None], session_class=Session):
    if publisher not in _publishers:
        _publishers.append(publisher)
    if not event.contains(session_class, "after_flush", _after_flush):
        event.listen(session_class, "after_flush", _after_flush)
        event.listen(session_class, "after_commit", _after_commit)
        event.listen(session_class, "after_rollback", _after_rollback)


def remove_change_capture(publisher: Callable[[dict], None]):
    if publisher in _publishers:
        _publishers.remove(publisher)
