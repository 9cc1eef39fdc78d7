import time

import jwt

from interactive_video import runtime
from interactive_video.services import video_token_service

SECRET = "token-secret-for-tests-0123456789abcdef"


def test_secure_token_verifies_until_expiry():
    now_ts = time.time()
    token, expires_at = video_token_service.generate_secure_token("v1", "u1", SECRET, now_ts, 60)

    assert expires_at == int(now_ts + 60)
    payload = video_token_service.verify_secure_token(token, SECRET)
    assert payload == {"video_id": "v1", "uid": "u1", "expires_at": expires_at}

    expired, _ = video_token_service.generate_secure_token("v1", "u1", SECRET, now_ts - 120, 60)
    assert video_token_service.verify_secure_token(expired, SECRET) is None


def test_secure_token_rejects_tampering():
    token, _ = video_token_service.generate_secure_token("v1", "u1", SECRET, time.time(), 60)
    header, _, signature = token.split(".")
    other_token, _ = video_token_service.generate_secure_token("v2", "u1", SECRET, time.time(), 60)
    _, other_body, _ = other_token.split(".")

    assert video_token_service.verify_secure_token(f"{header}.{other_body}.{signature}", SECRET) is None
    assert video_token_service.verify_secure_token(token, "another-secret-0123456789abcdefghij") is None
    assert video_token_service.verify_secure_token("é.x", SECRET) is None
    assert video_token_service.verify_secure_token("", SECRET) is None


def test_secure_token_rejects_other_jwts_signed_with_the_same_secret():
    session_like = jwt.encode({"iss": "interactive-video", "video_id": "v1", "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")
    unsigned = jwt.encode({"iss": "interactive-video", "typ": "video_access", "video_id": "v1", "exp": int(time.time()) + 60}, None, algorithm="none")

    assert video_token_service.verify_secure_token(session_like, SECRET) is None
    assert video_token_service.verify_secure_token(unsigned, SECRET) is None


def _seed_video(fake_db, visibility):
    fake_db.seed("videos", "v1", {"uid": "creator-1", "title": "Members only", "visibility": visibility, "created_at": 1.0})


def test_secure_access_issues_token_for_public_video(client, login, fake_db, monkeypatch):
    _seed_video(fake_db, "public")
    login(uid="viewer-1")
    monkeypatch.setattr(runtime, "VIDEO_TOKEN_SECRET", SECRET)

    response = client.post("/api/videos/v1/secure-access")

    assert response.status_code == 200
    body = response.get_json()
    access_logs = list(fake_db.docs("video_access").values())
    assert access_logs[0]["uid"] == "viewer-1"
    assert access_logs[0]["creator_id"] == "creator-1"

    verified = client.post("/api/videos/v1/verify-token", json={"token": body["token"]})
    assert verified.status_code == 200
    assert verified.get_json()["valid"] is True

    wrong_video = client.post("/api/videos/v2/verify-token", json={"token": body["token"]})
    assert wrong_video.status_code == 403


def test_secure_access_private_video_needs_owner_or_premium(client, login, fake_db):
    _seed_video(fake_db, "private")
    login(uid="viewer-1")

    assert client.post("/api/videos/v1/secure-access").status_code == 403

    fake_db.seed("user_subscriptions", "viewer-1", {"uid": "viewer-1", "status": "active", "plan_id": "premium_monthly"})
    assert client.post("/api/videos/v1/secure-access").status_code == 200


def test_verify_token_requires_token(client):
    response = client.post("/api/videos/v1/verify-token", json={})

    assert response.status_code == 400
