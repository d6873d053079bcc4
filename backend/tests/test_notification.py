import re

import pytest

from conftest import job_payload
from jobboard.models import Job, User
from jobboard.services.notification_service import (
    NotificationService,
    NotInitializedError,
    notification_service,
)
from jobboard.utils.timeutil import now_str


@pytest.fixture
def service():
    svc = NotificationService()
    svc.initialize()
    yield svc
    svc.shutdown()


def _change(table, event, row_id=1):
    return {"table": table, "event": event, "id": row_id, "commit_timestamp": now_str()}


class TestSubscriptions:
    def test_calls_before_initialize_raise(self):
        svc = NotificationService()
        with pytest.raises(NotInitializedError):
            svc.subscribe("job_recruitments", "*", lambda c: None)
        with pytest.raises(NotInitializedError):
            svc.unsubscribe("job_recruitments", "*")
        with pytest.raises(NotInitializedError):
            svc.unsubscribe_all()

    def test_initialize_is_idempotent(self, service):
        service.subscribe("tags", "*", lambda c: None)
        service.initialize()
        assert service.subscription_count == 1

    def test_subscription_id_format(self, service):
        sub_id = service.subscribe("job_recruitments", "INSERT", lambda c: None)
        assert re.fullmatch(r"job_recruitments_INSERT_\d+_[a-z0-9]{9}", sub_id)

    def test_invalid_event_is_rejected(self, service):
        with pytest.raises(ValueError):
            service.subscribe("tags", "UPSERT", lambda c: None)

    def test_unsubscribe_by_listener(self, service):
        first, second = [], []
        service.subscribe("tags", "*", first.append)
        service.subscribe("tags", "*", second.append)
        assert service.unsubscribe("tags", "*", first.append) == 1
        service.publish(_change("tags", "INSERT"))
        assert first == []
        assert len(second) == 1

    def test_unsubscribe_all_for_table_event(self, service):
        service.subscribe("tags", "*", lambda c: None)
        service.subscribe("tags", "*", lambda c: None)
        service.subscribe("tags", "INSERT", lambda c: None)
        assert service.unsubscribe("tags", "*") == 2
        assert service.subscription_count == 1
        service.unsubscribe_all()
        assert service.subscription_count == 0


class TestImportance:
    @pytest.mark.parametrize("table,event,expected", [
        ("job_recruitments", "UPDATE", True),
        ("job_categories", "DELETE", True),
        ("tags", "INSERT", True),
        ("job_tags", "UPDATE", True),
        ("users", "INSERT", False),
        ("activation_codes", "UPDATE", False),
        ("user_actions", "UPDATE", True),
        ("job_recruitments", "TRUNCATE", True),
    ])
    def test_importance_table(self, table, event, expected):
        assert NotificationService().is_change_important(table, event) is expected


class TestPublish:
    def test_wildcard_and_exact_event_subscribers(self, service):
        any_event, inserts, deletes = [], [], []
        service.subscribe("job_recruitments", "*", any_event.append)
        service.subscribe("job_recruitments", "INSERT", inserts.append)
        service.subscribe("job_recruitments", "DELETE", deletes.append)
        service.publish(_change("job_recruitments", "INSERT"))
        assert len(any_event) == 1
        assert len(inserts) == 1
        assert deletes == []

    def test_unimportant_changes_are_not_delivered(self, service):
        received = []
        service.subscribe("users", "*", received.append)
        service.publish(_change("users", "INSERT"))
        assert received == []
        assert service.changes_since(0) == ([], 0)

    def test_private_tables_are_delivered_but_not_buffered(self, service):
        received = []
        service.subscribe("user_actions", "*", received.append)
        service.publish(_change("user_actions", "UPDATE"))
        assert len(received) == 1
        assert service.changes_since(0) == ([], 0)

    def test_failing_listener_does_not_stop_fan_out(self, service):
        received = []

        def broken(change):
            raise RuntimeError("boom")

        service.subscribe("tags", "*", broken)
        service.subscribe("tags", "*", received.append)
        service.publish(_change("tags", "UPDATE"))
        assert len(received) == 1

    def test_changes_since(self, service):
        service.publish(_change("tags", "INSERT", 1))
        service.publish(_change("tags", "UPDATE", 1))
        service.publish(_change("job_recruitments", "INSERT", 7))
        changes, latest = service.changes_since(1)
        assert latest == 3
        assert [(c["table"], c["event"], c["seq"]) for c in changes] == [
            ("tags", "UPDATE", 2),
            ("job_recruitments", "INSERT", 3),
        ]


class TestChangeCapture:
    def _job(self):
        data = job_payload()
        now = now_str()
        return Job(
            job_title=data["job_title"],
            company=data["company"],
            category_id=[1],
            post_time=data["post_time"],
            deadline=data["deadline"],
            job_location="Shanghai",
            job_position="Engineer",
            job_graduation_year="25届",
            job_education_requirement="本科",
            created_at=now,
            updated_at=now,
            last_update=now,
        )

    def test_commit_publishes_insert_update_delete(self, test_db):
        received = []
        notification_service.subscribe("job_recruitments", "*", received.append)
        with test_db() as db:
            job = self._job()
            db.add(job)
            db.commit()
            job_id = job.id
            job.company = "Other"
            db.commit()
            db.delete(job)
            db.commit()
        assert [(c["event"], c["id"]) for c in received] == [
            ("INSERT", job_id), ("UPDATE", job_id), ("DELETE", job_id),
        ]

    def test_rollback_discards_changes(self, test_db):
        received = []
        notification_service.subscribe("job_recruitments", "*", received.append)
        with test_db() as db:
            db.add(self._job())
            db.flush()
            db.rollback()
        assert received == []

    def test_user_inserts_are_not_published(self, test_db):
        received = []
        notification_service.subscribe("users", "*", received.append)
        with test_db() as db:
            now = now_str()
            db.add(User(username="a", account="a@example.com", password_hash="x", created_at=now, updated_at=now))
            db.commit()
        assert received == []
