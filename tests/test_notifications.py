from interactive_video import runtime


def _seed_notification(fake_db, notification_id, uid="creator-1", read=False, created_at=1.0):
    fake_db.seed("notifications", notification_id, {
        "uid": uid,
        "title": notification_id,
        "message": "",
        "type": "system",
        "read": read,
        "created_at": created_at,
    })


def test_list_notifications_newest_first_with_unread_count(client, login, fake_db):
    _seed_notification(fake_db, "n1", created_at=1.0)
    _seed_notification(fake_db, "n2", created_at=2.0, read=True)
    _seed_notification(fake_db, "n3", created_at=3.0)
    _seed_notification(fake_db, "other", uid="someone-else")
    login()

    body = client.get("/api/notifications").get_json()

    assert [item["id"] for item in body["notifications"]] == ["n3", "n2", "n1"]
    assert body["unread_count"] == 2


def test_read_all_then_clear_all(client, login, fake_db):
    _seed_notification(fake_db, "n1")
    _seed_notification(fake_db, "n2")
    _seed_notification(fake_db, "other", uid="someone-else")
    login()

    assert client.post("/api/notifications/read-all").get_json()["updated"] == 2
    assert client.get("/api/notifications").get_json()["unread_count"] == 0
    assert fake_db.docs("notifications")["other"]["read"] is False

    cleared = client.delete("/api/notifications/clear-all").get_json()
    assert cleared["deleted"] == 2
    assert list(fake_db.docs("notifications")) == ["other"]


def test_notifications_require_login(client):
    assert client.get("/api/notifications").status_code == 401
    assert client.post("/api/notifications/read-all").status_code == 401


def test_comment_notifies_video_owner_but_not_self(client, login, fake_db):
    fake_db.seed("videos", "v1", {"uid": "creator-1", "title": "Lesson", "visibility": "public"})

    login(uid="viewer-1")
    assert client.post("/api/comments", json={"video_id": "v1", "content": "Loved it"}).status_code == 201
    login()
    assert client.post("/api/comments", json={"video_id": "v1", "content": "Thanks!"}).status_code == 201

    notifications = list(fake_db.docs("notifications").values())
    assert len(notifications) == 1
    assert notifications[0]["uid"] == "creator-1"
    assert notifications[0]["type"] == "comment"
    assert notifications[0]["message"] == "Lesson: Loved it"
    assert notifications[0]["action_url"] == "/videos/v1"


def test_payout_result_creates_in_app_notification(fake_db):
    runtime.notify_payout_result("creator-1", {"status": "failed", "amount": 12, "reference": "MANUAL-X", "failure_reason": "closed"})

    notification = list(fake_db.docs("notifications").values())[0]
    assert notification["uid"] == "creator-1"
    assert notification["type"] == "payout"
    assert notification["title"] == "Your payout could not be processed"
    assert "closed" in notification["message"]
