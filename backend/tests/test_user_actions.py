from datetime import timedelta

from conftest import job_payload

from jobboard.config import settings
from jobboard.utils.timeutil import format_ts, utcnow


class TestUserActions:
    def _setup(self, client, admin_headers, jobs=2):
        ids = []
        now = utcnow()
        for i in range(jobs):
            r = client.post("/api/v1/admin/jobs", json=job_payload(
                job_title=f"Job {i}",
                post_time=format_ts(now - timedelta(hours=i + 1)),
            ), headers=admin_headers)
            ids.append(r.json()["id"])
        client.post("/api/v1/auth/register", json={
            "username": "bob", "account": "bob@example.com", "password": "secret123",
        })
        r = client.post("/api/v1/auth/login", json={"account": "bob@example.com", "password": "secret123"})
        return ids, {"Authorization": f"Bearer {r.json()['token']}"}

    def test_toggle_favorite(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        r = client.post(f"/api/v1/me/favorites/{job_id}", headers=h)
        assert r.json() == {"job_id": job_id, "value": True}
        assert client.get("/api/v1/me/favorites/ids", headers=h).json() == [job_id]

        r = client.post(f"/api/v1/me/favorites/{job_id}", headers=h)
        assert r.json()["value"] is False
        assert client.get("/api/v1/me/favorites/ids", headers=h).json() == []
        assert client.get(f"/api/v1/jobs/{job_id}").json()["favorites_count"] == 0

    def test_favorites_newest_first(self, client, admin_headers):
        (first, second), h = self._setup(client, admin_headers)
        client.post(f"/api/v1/me/favorites/{first}", headers=h)
        client.post(f"/api/v1/me/favorites/{second}", headers=h)

        jobs = client.get("/api/v1/me/favorites", headers=h).json()
        assert [j["id"] for j in jobs] == [second, first]
        assert all(j["is_favorite"] for j in jobs)

    def test_favorite_missing_job(self, client, admin_headers):
        _, h = self._setup(client, admin_headers, jobs=0)
        assert client.post("/api/v1/me/favorites/999", headers=h).status_code == 404

    def test_apply_twice_counts_once(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        assert client.post(f"/api/v1/me/applications/{job_id}", headers=h).status_code == 200
        assert client.post(f"/api/v1/me/applications/{job_id}", headers=h).status_code == 200

        assert client.get("/api/v1/me/applications/ids", headers=h).json() == [job_id]
        assert client.get(f"/api/v1/jobs/{job_id}").json()["applications_count"] == 1

    def test_remove_application_clears_state(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        client.post(f"/api/v1/me/applications/{job_id}", headers=h)
        client.put(f"/api/v1/me/job-states/{job_id}", json={"state_id": 2}, headers=h)

        r = client.delete(f"/api/v1/me/applications/{job_id}", headers=h)
        assert r.json() == {"job_id": job_id, "value": False}
        assert client.get("/api/v1/me/applications", headers=h).json() == []
        assert client.get("/api/v1/me/job-states", headers=h).json()["states"] == {}
        assert client.get(f"/api/v1/jobs/{job_id}").json()["applications_count"] == 0

    def test_applications_carry_state(self, client, admin_headers):
        (first, second), h = self._setup(client, admin_headers)
        client.post(f"/api/v1/me/applications/{first}", headers=h)
        client.post(f"/api/v1/me/applications/{second}", headers=h)
        client.put(f"/api/v1/me/job-states/{first}", json={"state_id": 6}, headers=h)

        jobs = client.get("/api/v1/me/applications", headers=h).json()
        assert [(j["id"], j["job_state"]) for j in jobs] == [(second, None), (first, 6)]

    def test_job_states(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        r = client.put(f"/api/v1/me/job-states/{job_id}", json={"state_id": 4}, headers=h)
        assert r.json() == {"job_id": job_id, "state_id": 4, "label": "second interview"}

        client.put(f"/api/v1/me/job-states/{job_id}", json={"state_id": 5}, headers=h)
        data = client.get("/api/v1/me/job-states", headers=h).json()
        assert data["states"] == {str(job_id): 5}
        assert data["labels"]["1"] == "applied"

    def test_invalid_job_state(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        r = client.put(f"/api/v1/me/job-states/{job_id}", json={"state_id": 7}, headers=h)
        assert r.status_code == 400

    def test_actions_are_per_user(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        client.post(f"/api/v1/me/favorites/{job_id}", headers=h)

        client.post("/api/v1/auth/register", json={
            "username": "carol", "account": "carol@example.com", "password": "secret123",
        })
        token = client.post("/api/v1/auth/login", json={
            "account": "carol@example.com", "password": "secret123",
        }).json()["token"]
        assert client.get("/api/v1/me/favorites/ids", headers={"Authorization": f"Bearer {token}"}).json() == []

    def test_repeat_action_is_debounced(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        settings.action_debounce_seconds = 60
        assert client.post(f"/api/v1/me/favorites/{job_id}", headers=h).status_code == 200
        assert client.post(f"/api/v1/me/favorites/{job_id}", headers=h).status_code == 429
        # A different action on the same job is not blocked
        assert client.post(f"/api/v1/me/applications/{job_id}", headers=h).status_code == 200
        assert client.get("/api/v1/me/favorites/ids", headers=h).json() == [job_id]

    def test_failed_action_releases_debounce(self, client, admin_headers):
        _, h = self._setup(client, admin_headers, jobs=0)
        settings.action_debounce_seconds = 60
        assert client.post("/api/v1/me/favorites/999", headers=h).status_code == 404
        assert client.post("/api/v1/me/favorites/999", headers=h).status_code == 404

    def test_saved_lists_follow_job_edits(self, client, admin_headers):
        (job_id, _), h = self._setup(client, admin_headers)
        client.post(f"/api/v1/me/favorites/{job_id}", headers=h)
        client.post(f"/api/v1/me/applications/{job_id}", headers=h)
        assert client.get("/api/v1/me/favorites", headers=h).json()[0]["job_title"] == "Job 0"
        assert client.get("/api/v1/me/applications", headers=h).json()[0]["is_active"] is True

        client.put(f"/api/v1/admin/jobs/{job_id}", json={"job_title": "Renamed"}, headers=admin_headers)
        client.post(f"/api/v1/admin/jobs/{job_id}/toggle-active", headers=admin_headers)

        favorite = client.get("/api/v1/me/favorites", headers=h).json()[0]
        assert (favorite["job_title"], favorite["is_active"]) == ("Renamed", False)
        application = client.get("/api/v1/me/applications", headers=h).json()[0]
        assert (application["job_title"], application["is_active"]) == ("Renamed", False)
