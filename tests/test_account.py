from types import SimpleNamespace

from interactive_video import runtime


def _seed_account_data(fake_db):
    fake_db.seed("users", "creator-1", {"email": "creator@example.com", "display_name": "Casey"})
    fake_db.seed("videos", "v1", {"uid": "creator-1", "title": "Lesson"})
    fake_db.seed("share_links", "tok-1", {"uid": "creator-1", "video_id": "v1", "password_hash": "pbkdf2:secret"})
    fake_db.seed("share_links", "tok-2", {"uid": "collaborator", "video_id": "v1"})
    fake_db.seed("comments", "c1", {"uid": "creator-1", "video_id": "v1", "content": "Hi"})
    fake_db.seed("payout_accounts", "acct-1", {
        "uid": "creator-1",
        "type": "bank_transfer",
        "account_number": "000123456789",
        "routing_number": "011000015",
    })
    fake_db.seed("payout_transactions", "t1", {"uid": "creator-1", "amount": 10.0, "description": "Manual payout"})
    fake_db.seed("payout_settings", "creator-1", {"payout_frequency": "weekly"})
    fake_db.seed("comments", "c-other", {"uid": "someone-else", "video_id": "v1", "content": "Still here"})


def test_export_masks_sensitive_fields(client, login, fake_db):
    _seed_account_data(fake_db)
    login()

    response = client.get("/api/account/export")

    assert response.status_code == 200
    assert response.headers["Content-Disposition"].startswith('attachment; filename="interactive-video-account-export-')
    body = response.get_json()
    assert body["profile"]["display_name"] == "Casey"
    assert body["payout_settings"]["payout_frequency"] == "weekly"
    links = body["collections"]["share_links"]
    assert [link["_id"] for link in links] == ["tok-1"]
    assert "password_hash" not in links[0]
    account = body["collections"]["payout_accounts"][0]
    assert "account_number" not in account
    assert account["account_number_last4"] == "6789"
    assert [comment["_id"] for comment in body["collections"]["comments"]] == ["c1"]
    assert body["truncated"]["videos"] is False


def test_delete_requires_confirmation(client, login, fake_db):
    login()

    response = client.post("/api/account/delete", json={"confirm": "yes"})

    assert response.status_code == 400


def test_delete_removes_data_and_anonymizes_payouts(client, login, fake_db, monkeypatch):
    deleted_users = []
    monkeypatch.setattr(runtime, "auth", SimpleNamespace(delete_user=deleted_users.append))
    _seed_account_data(fake_db)
    login()

    response = client.post("/api/account/delete", json={"confirm": "DELETE"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["auth_user_deleted"] is True
    assert body["deleted"]["payout_transactions_anonymized"] == 1
    assert deleted_users == ["creator-1"]

    assert fake_db.docs("videos") == {}
    assert fake_db.docs("share_links") == {}
    assert fake_db.docs("payout_accounts") == {}
    assert fake_db.docs("payout_settings") == {}
    assert fake_db.docs("users") == {}
    assert list(fake_db.docs("comments")) == ["c-other"]
    transaction = fake_db.docs("payout_transactions")["t1"]
    assert transaction["uid"] == f"deleted:{runtime.hash_key('creator-1')}"
    assert transaction["description"] == ""
    assert transaction["amount"] == 10.0


def test_delete_reports_auth_failure_as_warning(client, login, fake_db, monkeypatch):
    def _fail(uid):
        raise RuntimeError("auth unavailable")

    monkeypatch.setattr(runtime, "auth", SimpleNamespace(delete_user=_fail))
    login()

    body = client.post("/api/account/delete", json={"confirm": "DELETE"}).get_json()

    assert body["ok"] is True
    assert body["auth_user_deleted"] is False
    assert body["warnings"] == ["Could not delete Firebase Auth user: auth unavailable"]
