from werkzeug.security import generate_password_hash

from interactive_video.services import element_service, share_service


def _seed_video(fake_db, elements=None):
    fake_db.seed("videos", "v1", {
        "uid": "creator-1",
        "title": "Shared lesson",
        "source": "local",
        "source_url": "https://cdn.example.com/v1.mp4",
        "visibility": "private",
        "duration": 120,
        "interactive_elements": elements or [],
        "created_at": 1.0,
    })


def _seed_link(fake_db, token="tok-1", **overrides):
    link = {
        "token": token,
        "video_id": "v1",
        "uid": "creator-1",
        "settings": dict(share_service.DEFAULT_SHARE_SETTINGS),
        "password_hash": "",
        "expires_at": None,
        "views": 0,
        "created_at": 10.0,
    }
    link.update(overrides)
    return fake_db.seed("share_links", token, link)


def _quiz_element():
    element, _ = element_service.validate_element({
        "type": "quiz",
        "title": "Pick the correct one",
        "timestamp": 12,
        "options": [{"id": "a", "text": "A", "is_correct": True}, {"id": "b", "text": "B"}],
    }, element_id="q1")
    return element


def test_validate_share_settings_rejects_bad_values():
    settings, password, expires_at, errors = share_service.validate_share_settings({
        "embed_width": 50,
        "autoplay": "yes",
        "start_time": 30,
        "end_time": 10,
        "password": "abc",
        "expires_at": "2020-01-01T00:00:00Z",
        "custom_branding": {"primary_color": "red"},
    }, now_ts=1_700_000_000)

    assert set(errors) == {
        "embed_width",
        "autoplay",
        "end_time",
        "password",
        "expires_at",
        "custom_branding.primary_color",
    }


def test_validate_share_settings_parses_future_expiry():
    settings, password, expires_at, errors = share_service.validate_share_settings({
        "embed_width": 800,
        "expires_at": "2030-01-01T00:00:00Z",
        "password": " secret ",
    }, now_ts=1_700_000_000)

    assert errors == {}
    assert settings["embed_width"] == 800
    assert settings["embed_height"] == 360
    assert password == "secret"
    assert expires_at == 1893456000.0


def test_check_share_access_gates():
    assert share_service.check_share_access(None, 100)[0] == 404
    assert share_service.check_share_access({"expires_at": 50}, 100)[0] == 403

    protected = {"password_hash": generate_password_hash("hunter22")}
    status, payload = share_service.check_share_access(protected, 100)
    assert status == 401
    assert payload["password_required"] is True
    assert share_service.check_share_access(protected, 100, "wrong")[0] == 401
    assert share_service.check_share_access(protected, 100, "hunter22") == (200, None)


def test_embed_codes_escape_and_size():
    codes = share_service.build_embed_codes("https://videos.example.com", "tok-1", {
        "embed_width": 800,
        "embed_height": 450,
        "autoplay": True,
    })

    assert 'width="800"' in codes["iframe_code"]
    assert 'src="https://videos.example.com/embed/tok-1"' in codes["iframe_code"]
    assert 'allow="autoplay"' in codes["iframe_code"]
    assert 'id="interactive-video-tok-1"' in codes["script_code"]
    assert '"autoplay": true' in codes["script_code"]


def test_create_share_link_stores_hashed_password(client, login, fake_db, monkeypatch):
    from interactive_video import runtime

    _seed_video(fake_db)
    login()
    monkeypatch.setattr(runtime, "PUBLIC_BASE_URL", "https://videos.example.com")

    response = client.post("/api/videos/v1/share", json={"password": "hunter22", "allow_download": True})

    assert response.status_code == 201
    body = response.get_json()
    token = body["share_token"]
    assert body["share_url"] == f"https://videos.example.com/shared/{token}"
    assert body["password_protected"] is True
    assert body["settings"]["allow_download"] is True
    assert "<iframe" in body["embed_code"]["iframe_code"]
    stored = fake_db.docs("share_links")[token]
    assert stored["password_hash"]
    assert stored["password_hash"] != "hunter22"

    listed = client.get("/api/videos/v1/share").get_json()["share_links"]
    assert [link["share_token"] for link in listed] == [token]
    assert "password_hash" not in listed[0]


def test_create_share_link_requires_owner(client, login, fake_db):
    _seed_video(fake_db)
    login(uid="intruder")

    response = client.post("/api/videos/v1/share", json={})

    assert response.status_code == 403


def test_shared_video_is_public_and_counts_views(client, fake_db):
    _seed_video(fake_db, elements=[_quiz_element()])
    _seed_link(fake_db)

    response = client.get("/api/shared/tok-1")

    assert response.status_code == 200
    body = response.get_json()
    assert body["video"]["id"] == "v1"
    assert body["share_token"] == "tok-1"
    assert all("is_correct" not in option for option in body["elements"][0]["options"])
    assert fake_db.docs("share_links")["tok-1"]["views"] == 1


def test_shared_video_password_flow(client, no_rate_limit, fake_db):
    _seed_video(fake_db)
    _seed_link(fake_db, password_hash=generate_password_hash("hunter22"))

    missing = client.get("/api/shared/tok-1")
    assert missing.status_code == 401
    assert missing.get_json()["password_required"] is True

    wrong = client.get("/api/shared/tok-1", headers={"X-Share-Password": "nope"})
    assert wrong.status_code == 401

    ok = client.get("/api/shared/tok-1", headers={"X-Share-Password": "hunter22"})
    assert ok.status_code == 200


def test_shared_video_expired_and_disabled_links(client, fake_db):
    _seed_video(fake_db)
    _seed_link(fake_db, "expired", expires_at=1.0)
    disabled_settings = dict(share_service.DEFAULT_SHARE_SETTINGS, allow_sharing=False)
    _seed_link(fake_db, "disabled", settings=disabled_settings)

    assert client.get("/api/shared/expired").status_code == 403
    assert client.get("/api/shared/disabled").status_code == 403
    assert client.get("/api/shared/unknown").status_code == 404


def test_shared_interactions_hidden_when_disabled(client, fake_db):
    _seed_video(fake_db, elements=[_quiz_element()])
    _seed_link(fake_db, settings=dict(share_service.DEFAULT_SHARE_SETTINGS, show_interactions=False))

    response = client.get("/api/shared/tok-1/interactions")

    assert response.status_code == 200
    assert response.get_json()["elements"] == []


def test_submit_shared_result_scores_anonymous_viewer(client, no_rate_limit, fake_db):
    _seed_video(fake_db, elements=[_quiz_element()])
    _seed_link(fake_db)

    response = client.post("/api/shared/tok-1/interactions/q1/results", json={"response": "a"})

    assert response.status_code == 201
    body = response.get_json()
    assert body["is_correct"] is True
    assert body["result"]["uid"] == ""
    assert "ip" not in body["result"]
    stored = list(fake_db.docs("interaction_results").values())
    assert stored[0]["share_token"] == "tok-1"
    assert stored[0]["ip"]


def test_submit_shared_result_respects_submission_setting(client, no_rate_limit, fake_db):
    _seed_video(fake_db, elements=[_quiz_element()])
    _seed_link(fake_db, settings=dict(share_service.DEFAULT_SHARE_SETTINGS, allow_interaction_submissions=False))

    response = client.post("/api/shared/tok-1/interactions/q1/results", json={"response": "a"})

    assert response.status_code == 403


def test_delete_share_link(client, login, fake_db):
    _seed_video(fake_db)
    _seed_link(fake_db)
    login()

    response = client.delete("/api/videos/v1/share/tok-1")

    assert response.status_code == 200
    assert "tok-1" not in fake_db.docs("share_links")
    assert client.delete("/api/videos/v1/share/tok-1").status_code == 404
