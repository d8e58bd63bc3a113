"""
Tests for page view counting and the statistics endpoint.

Tests cover:
- First view creates a counter with count=1
- Subsequent views increment by exactly one
- Concurrent views of one path never lose an update
- Path validation (400)
- GET /api/admin/statistics ordering
- Per-path lock table is released after use
"""

import threading

import pytest

from app import storage
from app.storage import SessionLocal, record_page_view


def view(client, path):
    response = client.post("/api/page-view", json={"path": path})
    assert response.status_code == 200
    return response.json()


class TestRecordView:

    def test_first_view_creates_counter(self, client):
        data = view(client, "/")

        assert data["path"] == "/"
        assert data["count"] == 1
        assert isinstance(data["id"], int)
        assert data["updatedAt"].endswith("Z")

    def test_views_increment_by_one(self, client):
        first = view(client, "/about")
        second = view(client, "/about")
        third = view(client, "/about")

        assert [first["count"], second["count"], third["count"]] == [1, 2, 3]
        assert first["id"] == second["id"] == third["id"]
        assert third["updatedAt"] >= first["updatedAt"]

    def test_paths_counted_separately(self, client):
        view(client, "/a")
        view(client, "/a")

        assert view(client, "/b")["count"] == 1

    @pytest.mark.parametrize("body", [{"path": ""}, {"path": 5}, {}, {"page": "/"}])
    def test_invalid_path(self, client, body):
        response = client.post("/api/page-view", json=body)

        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid path"}


class TestConcurrentViews:

    def test_two_concurrent_first_views(self, client):
        """Two simultaneous first views of a path end at count=2."""
        self._run_concurrently("/x", workers=2)

        assert view(client, "/x")["count"] == 3

    def test_many_concurrent_views(self, client):
        """No increment is lost under contention."""
        self._run_concurrently("/services", workers=16, per_worker=5)

        assert view(client, "/services")["count"] == 16 * 5 + 1

    @staticmethod
    def _run_concurrently(path, workers, per_worker=1):
        barrier = threading.Barrier(workers)
        errors = []

        def worker():
            barrier.wait()
            try:
                for _ in range(per_worker):
                    with SessionLocal() as db:
                        record_page_view(db, path)
            except Exception as e:  # surfaced by the assertion below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []


class TestStatistics:

    def test_statistics_sorted_by_count(self, admin_client):
        for _ in range(3):
            view(admin_client, "/popular")
        view(admin_client, "/rare")
        for _ in range(2):
            view(admin_client, "/middle")

        response = admin_client.get("/api/admin/statistics")

        assert response.status_code == 200
        data = response.json()
        assert [(c["path"], c["count"]) for c in data] == [
            ("/popular", 3),
            ("/middle", 2),
            ("/rare", 1),
        ]

    def test_statistics_empty(self, admin_client):
        assert admin_client.get("/api/admin/statistics").json() == []


class TestPathLockTable:

    def test_lock_table_does_not_grow_per_path(self, client):
        """Per-path locks are released once no request is using them."""
        for i in range(50):
            view(client, f"/random/{i}")

        assert storage._path_locks == {}

    def test_lock_table_empty_after_contention(self, client):
        TestConcurrentViews._run_concurrently("/contended", workers=8, per_worker=3)

        assert storage._path_locks == {}
        assert view(client, "/contended")["count"] == 25
