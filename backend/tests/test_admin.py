from conftest import job_payload


class TestAdminUsers:
    def _create(self, client, admin_headers, **overrides):
        body = {"username": "dave", "account": "dave@example.com", "password": "secret123", "icon": 3}
        body.update(overrides)
        return client.post("/api/v1/admin/users", json=body, headers=admin_headers)

    def test_create_and_list(self, client, admin_headers):
        r = self._create(client, admin_headers)
        assert r.status_code == 201
        assert "password_hash" not in r.json()
        assert r.json()["membership_type"] == "common_user"

        data = client.get("/api/v1/admin/users", headers=admin_headers).json()
        assert data["total"] == 1
        assert data["users"][0]["account"] == "dave@example.com"

    def test_search(self, client, admin_headers):
        self._create(client, admin_headers)
        self._create(client, admin_headers, username="erin", account="erin@example.com")
        data = client.get("/api/v1/admin/users", params={"q": "ERIN"}, headers=admin_headers).json()
        assert [u["username"] for u in data["users"]] == ["erin"]

    def test_duplicate_account(self, client, admin_headers):
        self._create(client, admin_headers)
        assert self._create(client, admin_headers).status_code == 409

    def test_invalid_icon(self, client, admin_headers):
        assert self._create(client, admin_headers, icon=10).status_code == 400

    def test_update_keeps_password_when_blank(self, client, admin_headers):
        user_id = self._create(client, admin_headers).json()["id"]
        r = client.put(f"/api/v1/admin/users/{user_id}", json={"username": "david", "password": ""}, headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["username"] == "david"
        r = client.post("/api/v1/auth/login", json={"account": "dave@example.com", "password": "secret123"})
        assert r.status_code == 200

    def test_update_password(self, client, admin_headers):
        user_id = self._create(client, admin_headers).json()["id"]
        client.put(f"/api/v1/admin/users/{user_id}", json={"password": "newsecret"}, headers=admin_headers)
        r = client.post("/api/v1/auth/login", json={"account": "dave@example.com", "password": "newsecret"})
        assert r.status_code == 200

    def test_deactivation_ends_sessions(self, client, admin_headers):
        user_id = self._create(client, admin_headers).json()["id"]
        token = client.post("/api/v1/auth/login", json={
            "account": "dave@example.com", "password": "secret123",
        }).json()["token"]
        h = {"Authorization": f"Bearer {token}"}
        assert client.get("/api/v1/me/favorites/ids", headers=h).status_code == 200

        r = client.post(f"/api/v1/admin/users/{user_id}/toggle-active", headers=admin_headers)
        assert r.json()["is_active"] is False
        assert client.get("/api/v1/me/favorites/ids", headers=h).status_code == 401

    def test_missing_user(self, client, admin_headers):
        assert client.put("/api/v1/admin/users/999", json={}, headers=admin_headers).status_code == 404


class TestActivationCodes:
    def test_generate(self, client, admin_headers):
        r = client.post("/api/v1/admin/activation-codes", json={
            "prefix": "spring", "count": 3, "validity_days": 90,
        }, headers=admin_headers)
        assert r.status_code == 201
        codes = r.json()
        assert len(codes) == 3
        assert len({c["code"] for c in codes}) == 3
        assert all(c["code"].startswith("SPRING-") for c in codes)
        assert all(c["validity_days"] == 90 and not c["is_used"] for c in codes)

    def test_generate_rejects_bad_input(self, client, admin_headers):
        r = client.post("/api/v1/admin/activation-codes", json={
            "prefix": " ", "count": 101, "validity_days": 0,
        }, headers=admin_headers)
        assert r.status_code == 400
        assert len(r.json()["detail"]) == 3

    def test_list_search_and_paging(self, client, admin_headers):
        client.post("/api/v1/admin/activation-codes", json={"prefix": "A", "count": 12}, headers=admin_headers)
        client.post("/api/v1/admin/activation-codes", json={"prefix": "B", "count": 2}, headers=admin_headers)

        data = client.get("/api/v1/admin/activation-codes", headers=admin_headers).json()
        assert data["total"] == 14
        assert len(data["codes"]) == 10

        data = client.get("/api/v1/admin/activation-codes", params={"q": "B-"}, headers=admin_headers).json()
        assert data["total"] == 2

    def test_export_unused_only(self, client, admin_headers):
        codes = client.post("/api/v1/admin/activation-codes", json={"count": 3}, headers=admin_headers).json()
        client.post(f"/api/v1/admin/activation-codes/{codes[0]['id']}/toggle-active", headers=admin_headers)

        r = client.get("/api/v1/admin/activation-codes/export", headers=admin_headers)
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        lines = r.text.strip().splitlines()
        assert lines[0] == "code,validity_days,created_at"
        exported = {line.split(",")[0] for line in lines[1:]}
        assert exported == {codes[1]["code"], codes[2]["code"]}

    def test_toggle_and_delete(self, client, admin_headers):
        code = client.post("/api/v1/admin/activation-codes", json={"count": 1}, headers=admin_headers).json()[0]
        r = client.post(f"/api/v1/admin/activation-codes/{code['id']}/toggle-active", headers=admin_headers)
        assert r.json()["is_active"] is False

        assert client.delete(f"/api/v1/admin/activation-codes/{code['id']}", headers=admin_headers).status_code == 200
        assert client.delete(f"/api/v1/admin/activation-codes/{code['id']}", headers=admin_headers).status_code == 404


class TestCatalogue:
    def test_default_categories(self, client):
        categories = client.get("/api/v1/categories").json()
        assert [c["id"] for c in categories] == list(range(1, 19))

    def test_rename_and_hide_category(self, client, admin_headers):
        r = client.put("/api/v1/admin/categories/4", json={"category": "Internet"}, headers=admin_headers)
        assert r.json()["category"] == "Internet"

        client.put("/api/v1/admin/categories/4", json={"is_active": False}, headers=admin_headers)
        public_ids = [c["id"] for c in client.get("/api/v1/categories").json()]
        assert 4 not in public_ids
        admin_ids = [c["id"] for c in client.get("/api/v1/admin/categories", headers=admin_headers).json()]
        assert 4 in admin_ids

    def test_blank_category_name(self, client, admin_headers):
        r = client.put("/api/v1/admin/categories/4", json={"category": " "}, headers=admin_headers)
        assert r.status_code == 400

    def test_recount(self, client, admin_headers):
        client.post("/api/v1/admin/jobs", json=job_payload(category_id=[3, 9]), headers=admin_headers)
        counts = {
            c["id"]: c["active_job_count"]
            for c in client.post("/api/v1/admin/categories/recount", headers=admin_headers).json()
        }
        assert counts[3] == 1
        assert counts[9] == 1
        assert counts[1] == 0

    def test_tags(self, client, admin_headers):
        r = client.post("/api/v1/admin/tags", json={"tag_name": "Remote", "tag_type": "location"}, headers=admin_headers)
        assert r.status_code == 201
        tag_id = r.json()["id"]
        client.post("/api/v1/admin/tags", json={"tag_name": "Hidden", "is_active": False}, headers=admin_headers)

        assert [t["tag_name"] for t in client.get("/api/v1/tags").json()] == ["Remote"]
        assert client.get("/api/v1/tags", params={"tag_type": "general"}).json() == []
        assert len(client.get("/api/v1/admin/tags", headers=admin_headers).json()) == 2

        r = client.put(f"/api/v1/admin/tags/{tag_id}", json={"tag_name": "Hybrid"}, headers=admin_headers)
        assert r.json()["tag_name"] == "Hybrid"

    def test_invalid_tag_type(self, client, admin_headers):
        r = client.post("/api/v1/admin/tags", json={"tag_name": "X", "tag_type": "bogus"}, headers=admin_headers)
        assert r.status_code == 400

    def test_delete_tag_detaches_jobs(self, client, admin_headers):
        job_id = client.post("/api/v1/admin/jobs", json=job_payload(), headers=admin_headers).json()["id"]
        tag_id = client.post("/api/v1/admin/tags", json={"tag_name": "Hot"}, headers=admin_headers).json()["id"]
        client.put(f"/api/v1/admin/jobs/{job_id}/tags", json={"action_tag_id": tag_id}, headers=admin_headers)

        assert client.delete(f"/api/v1/admin/tags/{tag_id}", headers=admin_headers).status_code == 200
        data = client.get(f"/api/v1/jobs/{job_id}/tags").json()
        assert data["action_tag"] is None


class TestFeedback:
    def test_anonymous_feedback(self, client, admin_headers):
        r = client.post("/api/v1/feedback", json={"content": "  Great site  "})
        assert r.status_code == 201
        assert r.json()["content"] == "Great site"
        assert r.json()["user_id"] is None

        messages = client.get("/api/v1/feedback", headers=admin_headers).json()
        assert [m["content"] for m in messages] == ["Great site"]

    def test_feedback_from_user(self, client):
        client.post("/api/v1/auth/register", json={
            "username": "fay", "account": "fay@example.com", "password": "secret123",
        })
        r = client.post("/api/v1/auth/login", json={"account": "fay@example.com", "password": "secret123"})
        h = {"Authorization": f"Bearer {r.json()['token']}"}
        r = client.post("/api/v1/feedback", json={"content": "More jobs please"}, headers=h)
        assert r.status_code == 201
        assert r.json()["user_id"] is not None

    def test_empty_and_long_feedback(self, client):
        assert client.post("/api/v1/feedback", json={"content": "   "}).status_code == 400
        assert client.post("/api/v1/feedback", json={"content": "x" * 2001}).status_code == 400

    def test_listing_requires_admin(self, client):
        assert client.get("/api/v1/feedback").status_code == 401


class TestStatistics:
    def test_report(self, client, admin_headers):
        client.post("/api/v1/admin/jobs", json=job_payload(), headers=admin_headers)
        client.post("/api/v1/admin/users", json={
            "username": "gus", "account": "gus@example.com", "password": "secret123",
        }, headers=admin_headers)

        r = client.get("/api/v1/admin/statistics", params={"force_refresh": True}, headers=admin_headers)
        assert r.status_code == 200
        data = r.json()
        assert data["period"] == "month"
        assert data["current"]["total_users"] == 1
        assert data["current"]["total_jobs"] == 1
        assert data["current"]["active_jobs"] == 1
        assert data["current"]["popular_categories"][0]["active_job_count"] == 1
        assert len(data["history"]) == 1

        # A second request the same day does not add another snapshot
        r = client.get("/api/v1/admin/statistics", params={"period": "week"}, headers=admin_headers)
        assert len(r.json()["history"]) == 1

    def test_invalid_period(self, client, admin_headers):
        r = client.get("/api/v1/admin/statistics", params={"period": "decade"}, headers=admin_headers)
        assert r.status_code == 400

    def test_export(self, client, admin_headers):
        assert client.get("/api/v1/admin/statistics/export", headers=admin_headers).status_code == 404

        client.get("/api/v1/admin/statistics", headers=admin_headers)
        r = client.get("/api/v1/admin/statistics/export", headers=admin_headers)
        assert r.status_code == 200
        lines = r.text.strip().splitlines()
        assert lines[0].startswith("date,total_users,")
        assert len(lines) == 2


class TestCsvImport:
    HEADER = (
        "job_title,company,category_id,post_time,deadline,job_location,"
        "job_position,job_graduation_year,job_education_requirement\n"
    )

    def _upload(self, client, admin_headers, body: str, encoding="UTF-8", commit=False):
        return client.post(
            "/api/v1/admin/jobs/import",
            files={"file": ("jobs.csv", body.encode(encoding), "text/csv")},
            data={"encoding": encoding, "commit": str(commit).lower()},
            headers=admin_headers,
        )

    def test_template(self, client, admin_headers):
        r = client.get("/api/v1/admin/jobs/import/template", headers=admin_headers)
        assert r.status_code == 200
        assert r.text.startswith("job_title,company,description,category_id")

    def test_preview_reports_errors(self, client, admin_headers):
        body = self.HEADER + (
            "Analyst,Acme,1 5,2025-03-01,2025-04-01,Shanghai,Analyst,25届,本科\n"
            "Broken,Acme,1 2,2025-03-01,2025-04-01,Shanghai,Analyst,25届,本科\n"
        )
        r = self._upload(client, admin_headers, body)
        assert r.status_code == 200
        data = r.json()
        assert data["valid_rows"] == 1
        assert data["imported"] == 0
        assert data["errors"] == ["Row 2: at most one company nature category (1-3) may be selected"]
        assert data["preview"][0]["job_title"] == "Analyst"

        assert client.get("/api/v1/admin/jobs", headers=admin_headers).json()["total"] == 0

    def test_commit_refused_with_errors(self, client, admin_headers):
        body = self.HEADER + "Broken,Acme,99,2025-03-01,2025-04-01,Shanghai,Analyst,25届,本科\n"
        r = self._upload(client, admin_headers, body, commit=True)
        assert r.status_code == 400

    def test_commit_gbk_file(self, client, admin_headers):
        body = self.HEADER + (
            "分析师,某公司,2 6,2025-03-01,2025-04-01,上海,分析师,24、25届毕业生,本科及以上\n"
            "工程师,某公司,1,2025-03-02,2025-04-01,北京,工程师,26届,研究生\n"
        )
        r = self._upload(client, admin_headers, body, encoding="GBK", commit=True)
        assert r.status_code == 200, r.text
        assert r.json()["imported"] == 2

        jobs = client.get("/api/v1/admin/jobs", headers=admin_headers).json()["jobs"]
        by_title = {j["job_title"]: j for j in jobs}
        assert by_title["分析师"]["job_graduation_year"] == ["24届", "25届"]
        assert by_title["分析师"]["category_id"] == [2, 6]
        assert by_title["工程师"]["job_education_requirement"] == "研究生"

        counts = {c["id"]: c["active_job_count"] for c in client.get("/api/v1/categories").json()}
        assert counts[2] == 1
        assert counts[6] == 1

    def test_wrong_encoding(self, client, admin_headers):
        body = self.HEADER + "分析师,某公司,1,2025-03-01,2025-04-01,上海,分析师,25届,本科\n"
        r = client.post(
            "/api/v1/admin/jobs/import",
            files={"file": ("jobs.csv", body.encode("GBK"), "text/csv")},
            data={"encoding": "UTF-8"},
            headers=admin_headers,
        )
        assert r.status_code == 400

    def test_empty_file(self, client, admin_headers):
        r = self._upload(client, admin_headers, "")
        assert r.status_code == 400


class TestChangesFeed:
    def test_job_changes_are_listed(self, client, admin_headers):
        latest = client.get("/api/v1/changes").json()["latest"]
        job_id = client.post("/api/v1/admin/jobs", json=job_payload(), headers=admin_headers).json()["id"]

        data = client.get("/api/v1/changes", params={"since": latest}).json()
        job_changes = [c for c in data["changes"] if c["table"] == "job_recruitments"]
        assert job_changes[0]["event"] == "INSERT"
        assert job_changes[0]["id"] == job_id
        assert data["latest"] > latest

    def test_user_changes_are_not_listed(self, client, admin_headers):
        latest = client.get("/api/v1/changes").json()["latest"]
        client.post("/api/v1/admin/users", json={
            "username": "hal", "account": "hal@example.com", "password": "secret123",
        }, headers=admin_headers)
        data = client.get("/api/v1/changes", params={"since": latest}).json()
        assert [c for c in data["changes"] if c["table"] == "users"] == []

    def test_private_rows_are_not_listed(self, client, admin_headers):
        job_id = client.post("/api/v1/admin/jobs", json=job_payload(), headers=admin_headers).json()["id"]
        client.post("/api/v1/auth/register", json={
            "username": "ivy", "account": "ivy@example.com", "password": "secret123",
        })
        token = client.post("/api/v1/auth/login", json={
            "account": "ivy@example.com", "password": "secret123",
        }).json()["token"]
        latest = client.get("/api/v1/changes").json()["latest"]

        client.post(f"/api/v1/me/favorites/{job_id}", headers={"Authorization": f"Bearer {token}"})
        client.post("/api/v1/feedback", json={"content": "Hello"})

        data = client.get("/api/v1/changes", params={"since": latest}).json()
        tables = {c["table"] for c in data["changes"]}
        assert "user_actions" not in tables
        assert "messages" not in tables
        assert "job_recruitments" in tables


def test_health(client):
    r = client.get("/health")
    assert r.json()["status"] == "ok"
