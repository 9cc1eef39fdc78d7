from interactive_video.services import element_service


def _quiz(**overrides):
    payload = {
        "type": "quiz",
        "title": "Which verb creates a resource?",
        "timestamp": 42,
        "options": [
            {"id": "get", "text": "GET"},
            {"id": "post", "text": "POST", "is_correct": True},
        ],
        "feedback": {"correct": "Right!", "incorrect": "Not quite."},
    }
    payload.update(overrides)
    return payload


def _seed_video(fake_db, elements=None, visibility="public", duration=120):
    fake_db.seed("videos", "v1", {
        "uid": "creator-1",
        "title": "REST basics",
        "visibility": visibility,
        "duration": duration,
        "interactive_elements": elements or [],
        "created_at": 1.0,
    })


def test_validate_element_accepts_quiz():
    element, errors = element_service.validate_element(_quiz(), video_duration=120)

    assert errors == {}
    assert element["type"] == "quiz"
    assert element["timestamp"] == 42.0
    assert element["duration"] == 10.0
    assert [option["is_correct"] for option in element["options"]] == [False, True]


def test_validate_element_requires_correct_quiz_option():
    payload = _quiz(options=[{"text": "A"}, {"text": "B"}])

    _, errors = element_service.validate_element(payload)

    assert "correct" in errors["options"]


def test_quiz_options_need_boolean_flags_and_unique_ids():
    payload = _quiz(options=[
        {"id": "a", "text": "A", "is_correct": "false"},
        {"id": "a", "text": "B", "is_correct": True},
    ])

    _, errors = element_service.validate_element(payload)

    assert "options.0.is_correct" in errors
    assert "options.1.id" in errors


def test_elements_past_duration_checks_timestamps_and_jumps():
    elements = [
        {"id": "early", "timestamp": 5, "options": [{"action": "jump:20"}]},
        {"id": "jumps-late", "timestamp": 5, "options": [{"action": "jump:90"}, {"action": ""}]},
        {"id": "late", "timestamp": 70},
    ]

    assert element_service.elements_past_duration(elements, 60) == ["jumps-late", "late"]
    assert element_service.elements_past_duration(elements, 0) == []


def test_validate_element_rejects_timestamp_past_video_end():
    _, errors = element_service.validate_element(_quiz(timestamp=500), video_duration=120)

    assert "timestamp" in errors


def test_decision_options_need_jump_actions():
    payload = {
        "type": "decision",
        "title": "Where next?",
        "timestamp": 5,
        "options": [{"text": "Skip ahead", "action": "jump:90"}, {"text": "Stay"}],
    }

    _, errors = element_service.validate_element(payload, video_duration=120)

    assert "options.1.action" in errors
    assert "options.0.action" not in errors


def test_decision_jump_cannot_pass_video_end():
    payload = {
        "type": "decision",
        "title": "Where next?",
        "timestamp": 5,
        "options": [{"text": "Far", "action": "jump:900"}, {"text": "Near", "action": "jump:10"}],
    }

    _, errors = element_service.validate_element(payload, video_duration=120)

    assert "options.0.action" in errors


def test_hotspot_position_must_be_percentages():
    payload = {"type": "hotspot", "title": "Click the logo", "timestamp": 3, "position": {"x": 150, "y": 20}}

    _, errors = element_service.validate_element(payload)

    assert "position" in errors

    payload["position"] = {"x": "25", "y": 75}
    element, errors = element_service.validate_element(payload)
    assert errors == {}
    assert element["position"] == {"x": 25.0, "y": 75.0}


def test_evaluate_response_requires_exact_correct_set():
    element, _ = element_service.validate_element(_quiz(options=[
        {"id": "a", "text": "A", "is_correct": True},
        {"id": "b", "text": "B", "is_correct": True},
        {"id": "c", "text": "C"},
    ]))

    assert element_service.evaluate_response(element, ["a", "b"]) is True
    assert element_service.evaluate_response(element, ["a"]) is False
    assert element_service.evaluate_response(element, []) is False


def test_poll_responses_are_unscored_and_single_choice():
    element, _ = element_service.validate_element({
        "type": "poll",
        "title": "Favourite framework?",
        "timestamp": 1,
        "options": [{"id": "flask", "text": "Flask"}, {"id": "django", "text": "Django"}],
    })

    assert element_service.evaluate_response(element, "flask") is None
    assert element_service.validate_response(element, "flask") == ""
    assert element_service.validate_response(element, ["flask", "django"]) == "Choose exactly one option"
    assert "existing option" in element_service.validate_response(element, "rails")


def test_public_element_strips_answer_keys():
    element, _ = element_service.validate_element(_quiz())

    public = element_service.public_element(element)

    assert all("is_correct" not in option for option in public["options"])
    assert "is_correct" in element["options"][0]


def test_infer_video_source():
    assert element_service.infer_video_source("https://youtu.be/abc") == "youtube"
    assert element_service.infer_video_source("https://player.vimeo.com/video/1") == "vimeo"
    assert element_service.infer_video_source("https://www.dailymotion.com/video/x1") == "dailymotion"
    assert element_service.infer_video_source("https://cdn.example.com/a.mp4") == "local"


def test_create_element_is_stored_in_timestamp_order(client, login, fake_db):
    _seed_video(fake_db, elements=[{"id": "late", "type": "poll", "title": "Later", "timestamp": 100, "options": []}])
    login()

    response = client.post("/api/videos/v1/elements", json=_quiz(id="forged-id"))

    assert response.status_code == 201
    element = response.get_json()["element"]
    assert element["id"] != "forged-id"
    stored = fake_db.docs("videos")["v1"]["interactive_elements"]
    assert [item["id"] for item in stored] == [element["id"], "late"]


def test_create_element_rejects_invalid_payload(client, login, fake_db):
    _seed_video(fake_db)
    login()

    response = client.post("/api/videos/v1/elements", json={"type": "survey", "title": ""})

    assert response.status_code == 400
    details = response.get_json()["details"]
    assert "type" in details
    assert "title" in details


def test_update_and_delete_element(client, login, fake_db):
    element, _ = element_service.validate_element(_quiz(), element_id="q1")
    _seed_video(fake_db, elements=[element])
    login()

    updated = client.put("/api/videos/v1/elements/q1", json={"title": "Renamed question", "timestamp": 60})
    assert updated.status_code == 200
    assert updated.get_json()["element"]["id"] == "q1"
    assert fake_db.docs("videos")["v1"]["interactive_elements"][0]["title"] == "Renamed question"

    deleted = client.delete("/api/videos/v1/elements/q1")
    assert deleted.status_code == 200
    assert fake_db.docs("videos")["v1"]["interactive_elements"] == []

    assert client.delete("/api/videos/v1/elements/q1").status_code == 404


def test_list_elements_hides_answers_from_viewers(client, fake_db):
    element, _ = element_service.validate_element(_quiz(), element_id="q1")
    _seed_video(fake_db, elements=[element])

    response = client.get("/api/videos/v1/elements")

    assert response.status_code == 200
    options = response.get_json()["elements"][0]["options"]
    assert all("is_correct" not in option for option in options)


def test_submit_response_scores_quiz_and_returns_feedback(client, login, no_rate_limit, fake_db):
    element, _ = element_service.validate_element(_quiz(), element_id="q1")
    _seed_video(fake_db, elements=[element])
    login(uid="viewer-1")

    response = client.post("/api/interactions", json={"video_id": "v1", "element_id": "q1", "response": "post"})

    assert response.status_code == 201
    body = response.get_json()
    assert body["is_correct"] is True
    assert body["feedback"] == "Right!"
    engagements = list(fake_db.docs("video_engagements").values())
    assert engagements[0]["creator_id"] == "creator-1"
    assert engagements[0]["timestamp"] == 42.0

    wrong = client.post("/api/interactions", json={"video_id": "v1", "element_id": "q1", "response": "get"})
    assert wrong.get_json()["feedback"] == "Not quite."


def test_submit_response_rejects_unknown_option(client, login, no_rate_limit, fake_db):
    element, _ = element_service.validate_element(_quiz(), element_id="q1")
    _seed_video(fake_db, elements=[element])
    login(uid="viewer-1")

    response = client.post("/api/interactions", json={"video_id": "v1", "element_id": "q1", "response": "delete"})

    assert response.status_code == 400


def test_list_responses_scopes_viewers_to_their_own(client, login, fake_db):
    _seed_video(fake_db)
    fake_db.seed("video_engagements", "e1", {"video_id": "v1", "uid": "viewer-1", "element_id": "q1", "element_type": "quiz", "created_at": 1})
    fake_db.seed("video_engagements", "e2", {"video_id": "v1", "uid": "viewer-2", "element_id": "q1", "element_type": "quiz", "created_at": 2})

    login(uid="viewer-1")
    own = client.get("/api/interactions/video/v1").get_json()["responses"]
    assert [item["uid"] for item in own["quiz"]] == ["viewer-1"]
    assert own["poll"] == []

    login(uid="creator-1")
    everything = client.get("/api/interactions/video/v1").get_json()
    assert everything["is_owner"] is True
    assert [item["uid"] for item in everything["responses"]["quiz"]] == ["viewer-1", "viewer-2"]
