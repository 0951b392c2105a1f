from datetime import datetime

import pytest

from models import MoodEntry, User
from schemas import MoodEntryResponse, normalize_rating, parse_tags, stored_tags


@pytest.mark.parametrize("value, expected", [
    (9, 5), (0, 1), (-3, 1), (3, 3), ("4", 4), ("4.7", 4), ("abc", 3), (None, 3), (True, 3),
])
def test_normalize_rating(value, expected):
    assert normalize_rating(value, 3) == expected


def test_parse_and_stored_tags():
    assert parse_tags(None) is None
    assert parse_tags("") is None
    assert parse_tags(["a", 1]) == ["a", "1"]
    assert stored_tags("not json") == []
    assert stored_tags({"a": 1}) == []
    assert stored_tags('["b", "a"]') == ["b", "a"]


def post_mood(client, headers, **body):
    body.setdefault("date", "2024-05-01T10:00:00Z")
    return client.post("/api/mood/entries", json=body, headers=headers)


def test_out_of_range_values_are_clamped(client, auth_headers):
    response = post_mood(client, auth_headers, score=9, energy=0, intensity="mucha")
    assert response.status_code == 201
    entry = response.json()["entry"]
    assert entry["score"] == 5
    assert entry["energy"] == 1
    assert entry["intensity"] == 3
    assert entry["emoji"] == "😐"
    assert entry["tags"] == []


def test_score_and_date_required(client, auth_headers):
    assert client.post("/api/mood/entries", json={"date": "2024-05-01T10:00:00"},
                       headers=auth_headers).status_code == 400
    assert client.post("/api/mood/entries", json={"score": 3},
                       headers=auth_headers).status_code == 400


def test_client_supplied_id(client, auth_headers):
    response = post_mood(client, auth_headers, id="mood-local-1", score=4)
    assert response.json()["entry"]["id"] == "mood-local-1"

    duplicate = post_mood(client, auth_headers, id="mood-local-1", score=2)
    assert duplicate.status_code == 409


def test_server_generated_id_has_prefix(client, auth_headers):
    entry = post_mood(client, auth_headers, score=4).json()["entry"]
    assert entry["id"].startswith("mood")


def test_empty_list_for_new_user(client, auth_headers):
    response = client.get("/api/mood/entries", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"entries": []}


def test_list_ordered_by_date_desc(client, auth_headers):
    post_mood(client, auth_headers, id="old", score=2, date="2024-01-01T00:00:00")
    post_mood(client, auth_headers, id="new", score=4, date="2024-06-01T00:00:00")
    post_mood(client, auth_headers, id="mid", score=3, date="2024-03-01T00:00:00")
    entries = client.get("/api/mood/entries", headers=auth_headers).json()["entries"]
    assert [e["id"] for e in entries] == ["new", "mid", "old"]


def test_update_clamps_and_patches(client, auth_headers):
    post_mood(client, auth_headers, id="m1", score=3, note="meh")
    response = client.put("/api/mood/entries/m1", json={"score": 42}, headers=auth_headers)
    entry = response.json()["entry"]
    assert entry["score"] == 5
    assert entry["note"] == "meh"


def test_other_user_gets_404(client, auth_headers, other_headers):
    post_mood(client, auth_headers, id="privado", score=3)
    assert client.get("/api/mood/entries/privado", headers=other_headers).status_code == 404
    assert client.put("/api/mood/entries/privado", json={"score": 1},
                      headers=other_headers).status_code == 404
    assert client.delete("/api/mood/entries/privado", headers=other_headers).status_code == 404
    assert client.delete("/api/mood/entries/privado", headers=auth_headers).json() == {"deleted": True}


def test_legacy_rows_read_with_defaults(db):
    user = User(name="Vieja", email="vieja@example.com", password_hash="x")
    db.add(user)
    db.commit()
    row = MoodEntry(id="legacy", user_id=user.id, score=7, energy=None, intensity=None,
                    date=datetime(2023, 1, 1), tags="{roto")
    db.add(row)
    db.commit()
    db.refresh(row)

    entry = MoodEntryResponse.model_validate(row)
    assert entry.score == 5
    assert entry.energy == 3
    assert entry.intensity == 3
    assert entry.tags == []


def test_dates_come_back_in_utc(client, auth_headers):
    entry = post_mood(client, auth_headers, score=3, date="2024-05-01T10:00:00+02:00").json()["entry"]
    assert entry["date"] == "2024-05-01T08:00:00Z"

    stored = client.get(f"/api/mood/entries/{entry['id']}", headers=auth_headers).json()["entry"]
    assert stored["date"] == "2024-05-01T08:00:00Z"
    assert stored["created_at"].endswith("Z")


def test_null_ratings_keep_stored_values(client, auth_headers):
    entry = post_mood(client, auth_headers, score=4, energy=5, intensity=2).json()["entry"]
    url = f"/api/mood/entries/{entry['id']}"

    response = client.put(url, json={"score": None, "energy": None, "note": "igual"}, headers=auth_headers)
    assert response.status_code == 200
    updated = response.json()["entry"]
    assert updated["score"] == 4
    assert updated["energy"] == 5
    assert updated["intensity"] == 2
    assert updated["note"] == "igual"


def test_overview_stats_use_clamped_scores(client, auth_headers, db):
    user_id = client.get("/api/auth/me", headers=auth_headers).json()["user"]["id"]
    db.add(MoodEntry(id="legacy-9", user_id=user_id, score=9, date=datetime(2024, 1, 1)))
    db.commit()

    data = client.get("/api/dashboard/overview", headers=auth_headers).json()["data"]
    assert [m["score"] for m in data["moods"]] == [5]
    assert data["stats"]["avg_mood"] == 5
    assert data["stats"]["mood_counts"] == [0, 0, 0, 0, 1]
