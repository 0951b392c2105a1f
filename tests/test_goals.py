def create_goal(client, headers, **body):
    body.setdefault("title", "Leer 10 libros")
    response = client.post("/api/goals", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["goal"]


def test_run_5k_scenario(client, auth_headers):
    response = client.post("/api/goals", json={"title": "Run 5k", "priority": "high"}, headers=auth_headers)
    assert response.status_code == 201
    goal = response.json()["goal"]
    assert goal["completed"] is False
    assert goal["priority"] == "high"
    assert goal["tags"] == []
    assert goal["completed_at"] is None

    updated = client.put(f"/api/goals/{goal['id']}", json={"completed": True}, headers=auth_headers)
    assert updated.status_code == 200
    assert updated.json()["goal"]["completed_at"] is not None

    overview = client.get("/api/dashboard/overview", headers=auth_headers).json()
    assert overview["success"] is True
    assert overview["data"]["stats"]["completed_goals"] == 1
    assert overview["data"]["stats"]["completion_rate"] == 100


def test_uncompleting_clears_completed_at(client, auth_headers):
    goal = create_goal(client, auth_headers)
    client.put(f"/api/goals/{goal['id']}", json={"completed": True}, headers=auth_headers)

    response = client.put(
        f"/api/goals/{goal['id']}",
        json={"completed": False, "completedAt": "2024-01-01T10:00:00"},
        headers=auth_headers,
    )
    body = response.json()["goal"]
    assert body["completed"] is False
    assert body["completed_at"] is None


def test_completed_at_from_client_is_kept(client, auth_headers):
    goal = create_goal(client, auth_headers)
    response = client.put(
        f"/api/goals/{goal['id']}",
        json={"completed": True, "completed_at": "2024-03-05T08:30:00Z"},
        headers=auth_headers,
    )
    assert response.json()["goal"]["completed_at"].startswith("2024-03-05T08:30:00")


def test_tags_keep_order(client, auth_headers):
    goal = create_goal(client, auth_headers, tags=["a", "b"])
    fetched = client.get(f"/api/goals/{goal['id']}", headers=auth_headers).json()["goal"]
    assert fetched["tags"] == ["a", "b"]


def test_tags_accept_comma_string_and_json_string(client, auth_headers):
    from_csv = create_goal(client, auth_headers, tags="salud, running")
    from_json = create_goal(client, auth_headers, tags='["x", "y"]')
    assert from_csv["tags"] == ["salud", "running"]
    assert from_json["tags"] == ["x", "y"]


def test_camel_case_input_snake_case_output(client, auth_headers):
    goal = create_goal(client, auth_headers, dueAt="2030-01-01T00:00:00")
    assert goal["due_at"].startswith("2030-01-01")
    assert "dueAt" not in goal


def test_list_newest_first(client, auth_headers):
    first = create_goal(client, auth_headers, title="Primero")
    second = create_goal(client, auth_headers, title="Segundo")
    goals = client.get("/api/goals", headers=auth_headers).json()["goals"]
    assert [g["id"] for g in goals] == [second["id"], first["id"]]


def test_missing_title_is_400(client, auth_headers):
    response = client.post("/api/goals", json={"note": "sin título"}, headers=auth_headers)
    assert response.status_code == 400
    assert "title" in response.json()["detail"]


def test_invalid_priority_is_400(client, auth_headers):
    response = client.post("/api/goals", json={"title": "X", "priority": "urgent"}, headers=auth_headers)
    assert response.status_code == 400


def test_empty_update_returns_goal_unchanged(client, auth_headers):
    goal = create_goal(client, auth_headers, note="nota")
    response = client.put(f"/api/goals/{goal['id']}", json={}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["goal"] == goal


def test_partial_update_only_touches_sent_fields(client, auth_headers):
    goal = create_goal(client, auth_headers, note="nota", priority="low")
    response = client.put(f"/api/goals/{goal['id']}", json={"title": "Nuevo"}, headers=auth_headers)
    body = response.json()["goal"]
    assert body["title"] == "Nuevo"
    assert body["note"] == "nota"
    assert body["priority"] == "low"


def test_delete_then_not_found(client, auth_headers):
    goal = create_goal(client, auth_headers)
    response = client.delete(f"/api/goals/{goal['id']}", headers=auth_headers)
    assert response.json() == {"deleted": True}
    assert client.get(f"/api/goals/{goal['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"/api/goals/{goal['id']}", headers=auth_headers).status_code == 404


def test_other_user_cannot_touch_goal(client, auth_headers, other_headers):
    goal = create_goal(client, auth_headers)
    url = f"/api/goals/{goal['id']}"

    assert client.get(url, headers=other_headers).status_code == 404
    assert client.put(url, json={"title": "Robado"}, headers=other_headers).status_code == 404
    assert client.delete(url, headers=other_headers).status_code == 404
    assert client.get("/api/goals", headers=other_headers).json()["goals"] == []

    assert client.get(url, headers=auth_headers).json()["goal"]["title"] == goal["title"]
