"""
HTTP tests for the sessions and streaks routers.

Covers:
- GET /health
- POST /sessions: qualifying, short, midnight-crossing, duplicate
- POST /sessions/batch: multi-status, partial failure, size limits
- GET /users/{id}/streak, POST /users/{id}/streak/reset
- GET /streaks/leaderboard
- GET /users/{id}/sessions
"""
import pytest


def session_payload(session_id="s1", user_id="u1",
                    start="2025-01-20T10:00:00Z", end="2025-01-20T10:30:00Z",
                    tz="UTC"):
    return {
        "session_id": session_id,
        "user_id": user_id,
        "start_time": start,
        "end_time": end,
        "timezone": tz,
    }


def on_day(day, session_id, user_id="u1", minutes=30):
    return session_payload(
        session_id=session_id,
        user_id=user_id,
        start=f"2025-01-{day:02d}T10:00:00Z",
        end=f"2025-01-{day:02d}T10:{minutes:02d}:00Z",
    )


class TestHealth:
    def test_health_ok(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["db"] == "ok"


class TestAcceptSession:
    def test_qualifying_session(self, client):
        r = client.post("/sessions", json=session_payload())
        assert r.status_code == 201
        body = r.json()
        assert body["duplicate"] is False
        assert body["qualified_dates"] == ["2025-01-20"]
        assert len(body["segments"]) == 1
        assert body["segments"][0]["session_id"] == "s1"
        assert body["segments"][0]["duration_minutes"] == 30
        assert body["streak"] == {
            "user_id": "u1",
            "current_streak": 1,
            "longest_streak": 1,
            "last_qualified_date": "2025-01-20",
            "qualified_days_count": 1,
            "has_active_streak": True,
        }

    def test_short_session_does_not_qualify(self, client):
        r = client.post("/sessions", json=session_payload(end="2025-01-20T10:29:00Z"))
        assert r.status_code == 201
        body = r.json()
        assert body["qualified_dates"] == []
        assert body["streak"]["current_streak"] == 0
        assert body["streak"]["has_active_streak"] is False

    def test_midnight_crossing_in_local_zone(self, client):
        # 23:00 -> 01:00 in New York
        payload = session_payload(
            start="2025-01-10T23:00:00-05:00",
            end="2025-01-11T01:00:00-05:00",
            tz="America/New_York",
        )
        r = client.post("/sessions", json=payload)
        assert r.status_code == 201
        body = r.json()
        assert [s["session_id"] for s in body["segments"]] == ["s1-day0", "s1-day1"]
        assert [s["civil_date"] for s in body["segments"]] == ["2025-01-10", "2025-01-11"]
        assert [s["duration_minutes"] for s in body["segments"]] == [60, 60]
        assert body["streak"]["current_streak"] == 2

    def test_duplicate_is_noop(self, client):
        client.post("/sessions", json=session_payload())
        r = client.post("/sessions", json=session_payload())
        assert r.status_code == 201
        body = r.json()
        assert body["duplicate"] is True
        assert body["segments"] == []
        assert body["streak"] is None

        streak = client.get("/users/u1/streak").json()
        assert streak["qualified_days_count"] == 1

    def test_whitespace_trimmed(self, client):
        r = client.post("/sessions", json=session_payload(session_id="  s9  ", tz=" UTC "))
        assert r.status_code == 201
        assert r.json()["session_id"] == "s9"


class TestBatch:
    def test_all_succeed(self, client):
        payload = {"items": [on_day(10, "a"), on_day(11, "b"), on_day(12, "c")]}
        r = client.post("/sessions/batch", json=payload)
        assert r.status_code == 207
        body = r.json()
        assert body["total"] == 3
        assert body["succeeded"] == 3
        assert body["failed"] == 0
        assert [i["index"] for i in body["items"]] == [0, 1, 2]
        assert body["items"][2]["result"]["streak"]["current_streak"] == 3

    def test_partial_failure(self, client):
        bad = session_payload(session_id="bad", tz="Mars/Base")
        payload = {"items": [on_day(10, "a"), bad, on_day(11, "c")]}
        r = client.post("/sessions/batch", json=payload)
        assert r.status_code == 207
        body = r.json()
        assert body["succeeded"] == 2
        assert body["failed"] == 1
        failed = body["items"][1]
        assert failed["ok"] is False
        assert failed["result"] is None
        assert failed["error"]["code"] == "INVALID_TIMEZONE"
        assert client.get("/users/u1/streak").json()["current_streak"] == 2

    def test_duplicates_within_batch(self, client):
        payload = {"items": [on_day(10, "a"), on_day(10, "a")]}
        body = client.post("/sessions/batch", json=payload).json()
        assert [i["ok"] for i in body["items"]] == [True, True]
        assert [i["result"]["duplicate"] for i in body["items"]] == [False, True]

    def test_empty_batch(self, client):
        r = client.post("/sessions/batch", json={"items": []})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_too_many_items(self, client):
        items = [on_day(10, f"s{i}") for i in range(101)]
        r = client.post("/sessions/batch", json={"items": items})
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "BATCH_TOO_LARGE"
        assert body["details"] == {"max_items": 100, "received": 101}


class TestStreaks:
    def test_unknown_user_zero_value(self, client):
        r = client.get("/users/nobody/streak")
        assert r.status_code == 200
        assert r.json() == {
            "user_id": "nobody",
            "current_streak": 0,
            "longest_streak": 0,
            "last_qualified_date": None,
            "qualified_days_count": 0,
            "has_active_streak": False,
        }

    def test_gap_restarts_streak(self, client):
        for day, sid in ((10, "a"), (11, "b"), (13, "c")):
            client.post("/sessions", json=on_day(day, sid))
        body = client.get("/users/u1/streak").json()
        assert body["current_streak"] == 1
        assert body["longest_streak"] == 2
        assert body["last_qualified_date"] == "2025-01-13"

    def test_late_session_counts_only(self, client):
        for day, sid in ((11, "a"), (12, "b"), (13, "c"), (14, "d"), (15, "e")):
            client.post("/sessions", json=on_day(day, sid))
        client.post("/sessions", json=on_day(9, "late"))
        body = client.get("/users/u1/streak").json()
        assert body["current_streak"] == 5
        assert body["last_qualified_date"] == "2025-01-15"
        assert body["qualified_days_count"] == 6

    def test_reset(self, client):
        client.post("/sessions", json=on_day(19, "a"))
        client.post("/sessions", json=on_day(20, "b"))
        r = client.post("/users/u1/streak/reset")
        assert r.status_code == 200
        body = r.json()
        assert body["current_streak"] == 0
        assert body["longest_streak"] == 2
        assert body["last_qualified_date"] == "2025-01-20"
        assert body["has_active_streak"] is False

    def test_reset_unknown_user(self, client):
        r = client.post("/users/ghost/streak/reset")
        assert r.status_code == 200
        assert r.json()["current_streak"] == 0


class TestLeaderboard:
    def test_ranked_by_qualified_days(self, client):
        for day in (10, 11, 12):
            client.post("/sessions", json=on_day(day, f"a{day}", user_id="alice"))
        for day in (10, 11):
            client.post("/sessions", json=on_day(day, f"b{day}", user_id="bob"))
        client.post("/sessions", json=on_day(10, "c10", user_id="carol", minutes=5))

        body = client.get("/streaks/leaderboard").json()
        assert [(e["rank"], e["user_id"]) for e in body["items"]] == [
            (1, "alice"), (2, "bob"), (3, "carol"),
        ]
        assert body["items"][2]["qualified_days_count"] == 0

    def test_limit(self, client):
        for user in ("a", "b", "c"):
            client.post("/sessions", json=on_day(10, f"s-{user}", user_id=user))
        body = client.get("/streaks/leaderboard", params={"limit": 2}).json()
        assert body["total"] == 2

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, client, limit):
        r = client.get("/streaks/leaderboard", params={"limit": limit})
        assert r.status_code == 422


class TestListSessions:
    def test_range(self, client):
        client.post("/sessions", json=on_day(10, "a", minutes=20))
        client.post("/sessions", json=on_day(11, "b", minutes=40))
        client.post("/sessions", json=on_day(14, "c"))
        r = client.get(
            "/users/u1/sessions",
            params={"start_date": "2025-01-10", "end_date": "2025-01-11"},
        )
        assert r.status_code == 200
        body = r.json()
        assert body["total"] == 2
        assert body["total_minutes"] == 60
        assert [s["session_id"] for s in body["items"]] == ["a", "b"]

    def test_split_segments_listed_by_civil_date(self, client):
        payload = session_payload(
            start="2025-01-10T23:00:00-05:00",
            end="2025-01-11T01:00:00-05:00",
            tz="America/New_York",
        )
        client.post("/sessions", json=payload)
        body = client.get(
            "/users/u1/sessions",
            params={"start_date": "2025-01-11", "end_date": "2025-01-11"},
        ).json()
        assert [s["session_id"] for s in body["items"]] == ["s1-day1"]
        assert body["items"][0]["source_session_id"] == "s1"

    def test_inverted_range(self, client):
        r = client.get(
            "/users/u1/sessions",
            params={"start_date": "2025-01-12", "end_date": "2025-01-10"},
        )
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_DATE_RANGE"
