from datetime import date, datetime, timedelta
from types import SimpleNamespace as Row

import dashboard
from models import utcnow


def test_stats_with_no_data():
    stats = dashboard.calculate_stats([], [], [], [])
    assert stats["total_goals"] == 0
    assert stats["completion_rate"] == 0
    assert stats["avg_mood"] == 0
    assert stats["mood_counts"] == [0, 0, 0, 0, 0]
    assert stats["goals_by_priority"]["medium"] == {"open": 0, "completed": 0}


def test_stats_values():
    goals = [
        Row(completed=True, priority="high"),
        Row(completed=False, priority="high"),
        Row(completed=False, priority="weird"),
    ]
    moods = [Row(score=5), Row(score=4), Row(score=9), Row(score=0)]
    runs = [Row(actual_seconds=90), Row(actual_seconds=89), Row(actual_seconds=None)]
    entries = [Row(summary="ok"), Row(summary=None)]

    stats = dashboard.calculate_stats(goals, moods, runs, entries)

    assert stats["completed_goals"] == 1
    assert stats["open_goals"] == 2
    assert stats["completion_rate"] == 33
    assert stats["avg_mood"] == 3.8
    assert stats["mood_counts"] == [1, 0, 0, 1, 2]
    assert stats["total_med_minutes"] == 3
    assert stats["total_med_sessions"] == 3
    assert stats["journal_count"] == 2
    assert stats["journal_with_summary"] == 1
    assert stats["goals_by_priority"]["high"] == {"open": 1, "completed": 1}
    assert stats["goals_by_priority"]["medium"] == {"open": 1, "completed": 0}


def test_stats_do_not_depend_on_order():
    moods = [Row(score=s) for s in (1, 3, 5, 2)]
    assert dashboard.calculate_stats(moods=moods) == dashboard.calculate_stats(moods=list(reversed(moods)))


def test_build_trends_buckets_each_day():
    start, end = date(2024, 5, 1), date(2024, 5, 3)
    goals = [Row(created_at=datetime(2024, 4, 1), completed=True, completed_at=datetime(2024, 5, 2, 9))]
    moods = [Row(date=datetime(2024, 5, 1, 8), score=2), Row(date=datetime(2024, 5, 1, 20), score=5)]
    runs = [Row(started_at=datetime(2024, 5, 3, 7), actual_seconds=600)]

    trends = dashboard.build_trends(goals, moods, runs, start, end)

    assert [t["date"] for t in trends] == ["2024-05-01", "2024-05-02", "2024-05-03"]
    assert trends[0]["mood_avg"] == 3.5
    assert trends[0]["mood_count"] == 2
    assert trends[1]["mood_avg"] is None
    assert trends[1]["goals_completed"] == 1
    assert trends[2]["meditation_minutes"] == 10


def test_overview_empty_user(client, auth_headers):
    response = client.get("/api/dashboard/overview", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["goals"] == [] and data["moods"] == [] and data["med_runs"] == []
    assert data["stats"]["completion_rate"] == 0


def test_overview_limits_recent_moods(client, auth_headers):
    base = datetime(2024, 1, 1)
    for day in range(dashboard.OVERVIEW_MOOD_LIMIT + 3):
        client.post("/api/mood/entries",
                    json={"score": 3, "date": (base + timedelta(days=day)).isoformat()},
                    headers=auth_headers)

    data = client.get("/api/dashboard/overview", headers=auth_headers).json()["data"]
    assert len(data["moods"]) == dashboard.OVERVIEW_MOOD_LIMIT
    assert data["moods"][0]["date"].startswith("2024-02-22")


def test_overview_only_sees_own_data(client, auth_headers, other_headers):
    client.post("/api/goals", json={"title": "Mío"}, headers=auth_headers)
    data = client.get("/api/dashboard/overview", headers=other_headers).json()["data"]
    assert data["goals"] == []
    assert data["stats"]["total_goals"] == 0


def test_detailed_stats_periods(client, auth_headers):
    now = utcnow()
    client.post("/api/mood/entries", json={"score": 5, "date": now.isoformat()}, headers=auth_headers)
    client.post("/api/mood/entries", json={"score": 1, "date": (now - timedelta(days=20)).isoformat()},
                headers=auth_headers)
    client.post("/api/mood/entries", json={"score": 3, "date": (now - timedelta(days=90)).isoformat()},
                headers=auth_headers)

    body = client.get("/api/dashboard/stats", headers=auth_headers).json()
    assert body["success"] is True
    stats = body["stats"]
    assert stats["avg_mood"] == 3
    assert stats["periods"]["last_7_days"]["avg_mood"] == 5
    assert stats["periods"]["last_30_days"]["avg_mood"] == 3
    assert stats["periods"]["all_time"]["mood_counts"] == [1, 0, 1, 0, 1]


def test_trends_endpoint(client, auth_headers):
    client.post("/api/meditation/runs",
                json={"startedAt": utcnow().isoformat(), "actualSeconds": 1200},
                headers=auth_headers)

    body = client.get("/api/dashboard/trends?period=7d", headers=auth_headers).json()
    assert body["period"] == "7d"
    assert len(body["trends"]) == 7
    assert body["trends"][-1]["meditation_minutes"] == 20


def test_trends_unknown_period_is_400(client, auth_headers):
    response = client.get("/api/dashboard/trends?period=2w", headers=auth_headers)
    assert response.status_code == 400


def test_trends_clamp_legacy_scores():
    day = date(2024, 5, 1)
    moods = [Row(date=datetime(2024, 5, 1, 9), score=9), Row(date=datetime(2024, 5, 1, 21), score=3)]
    trends = dashboard.build_trends([], moods, [], day, day)
    assert trends[0]["mood_avg"] == 4
