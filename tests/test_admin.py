from interactive_video import runtime

NOW = 1_760_000_000.0


def test_admin_routes_require_admin(client, login):
    assert client.get("/api/admin/overview").status_code == 401

    login(uid="viewer-1")
    assert client.get("/api/admin/overview").status_code == 403
    assert client.post("/api/admin/payouts/run").status_code == 403
    assert client.post("/api/admin/affiliate/commissions/c1/approve").status_code == 403


def test_overview_metrics(client, login, fake_db, monkeypatch):
    monkeypatch.setattr(runtime.time, "time", lambda: NOW)
    fake_db.seed("users", "u1", {"created_at": NOW - 3600})
    fake_db.seed("users", "u2", {"created_at": NOW - 60 * 86400})
    fake_db.seed("videos", "v1", {"uid": "u1", "created_at": NOW - 100})
    fake_db.seed("share_links", "tok-1", {"video_id": "v1"})
    fake_db.seed("user_subscriptions", "u1", {"status": "active"})
    fake_db.seed("user_subscriptions", "u2", {"status": "canceled"})
    fake_db.seed("payout_transactions", "t1", {"uid": "u1", "status": "pending", "amount": 10.0, "created_at": NOW - 10})
    fake_db.seed("payout_transactions", "t2", {"uid": "u1", "status": "completed", "amount": 5.5, "created_at": NOW - 20})
    fake_db.seed("payout_transactions", "t3", {"uid": "u1", "status": "failed", "amount": 3.0, "created_at": NOW - 30})
    fake_db.seed("rate_limit_logs", "r1", {"limit_name": "Checkout", "created_at": NOW - 5})
    fake_db.seed("rate_limit_logs", "r2", {"limit_name": "checkout", "created_at": NOW - 6})
    fake_db.seed("rate_limit_logs", "r3", {"limit_name": "analytics", "created_at": NOW - 40 * 86400})
    login(uid="admin-1", admin=True)

    body = client.get("/api/admin/overview?window=30d").get_json()

    metrics = body["metrics"]
    assert body["window"]["key"] == "30d"
    assert metrics["total_users"] == 2
    assert metrics["new_users"] == 1
    assert metrics["total_videos"] == 1
    assert metrics["new_videos"] == 1
    assert metrics["total_share_links"] == 1
    assert metrics["active_subscriptions"] == 1
    assert metrics["payout_count"] == 3
    assert metrics["payout_status_counts"]["failed"] == 1
    assert metrics["pending_payout_volume"] == 10.0
    assert metrics["completed_payout_volume"] == 5.5
    assert metrics["rate_limit_429_counts"] == {"checkout": 2}
    assert metrics["rate_limit_429_total"] == 2
    assert [payout["amount"] for payout in body["recent_payouts"]] == [10.0, 5.5, 3.0]
    assert body["runtime_checks"]["firebase_ready"] is True


def test_scheduled_jobs_accept_dry_run_from_query_or_body(client, login, monkeypatch):
    calls = []
    monkeypatch.setattr(runtime, "schedule_earnings_periods", lambda dry_run=False: calls.append(("schedule", dry_run)) or ["u1"])
    monkeypatch.setattr(runtime, "run_scheduled_payouts", lambda dry_run=False: calls.append(("payouts", dry_run)) or (["u1"], ["u2"]))
    login(uid="admin-1", admin=True)

    schedule = client.post("/api/admin/earnings/schedule?dry_run=true").get_json()
    payouts = client.post("/api/admin/payouts/run", json={"dry_run": False}).get_json()

    assert schedule == {"ok": True, "dry_run": True, "created": ["u1"]}
    assert payouts == {"ok": True, "dry_run": False, "triggered": ["u1"], "failed": ["u2"]}
    assert calls == [("schedule", True), ("payouts", False)]


def test_approve_commission_credits_affiliate(client, login, fake_db):
    fake_db.seed("affiliate_users", "aff-1", {"status": "active", "total_commission": 1.0, "unpaid_commission": 1.0})
    fake_db.seed("affiliate_commissions", "subscription__in_1", {"affiliate_uid": "aff-1", "amount": 2.0, "status": "pending"})
    login(uid="admin-1", admin=True)

    response = client.post("/api/admin/affiliate/commissions/subscription__in_1/approve")

    assert response.status_code == 200
    assert response.get_json()["commission"]["status"] == "approved"
    affiliate = fake_db.docs("affiliate_users")["aff-1"]
    assert affiliate["unpaid_commission"] == 3.0
    assert affiliate["total_commission"] == 3.0

    assert client.post("/api/admin/affiliate/commissions/subscription__in_1/approve").status_code == 400
    assert client.post("/api/admin/affiliate/commissions/missing/approve").status_code == 400


def test_process_affiliate_payout_marks_commissions_paid(client, login, fake_db, monkeypatch):
    notified = []
    monkeypatch.setattr(runtime, "notify_affiliate_payout", notified.append)
    fake_db.seed("affiliate_users", "aff-1", {"status": "active", "unpaid_commission": 3.0, "paid_commission": 0.0})
    fake_db.seed("affiliate_commissions", "c1", {"affiliate_uid": "aff-1", "amount": 1.0, "status": "approved", "created_at": 1.0})
    fake_db.seed("affiliate_commissions", "c2", {"affiliate_uid": "aff-1", "amount": 2.0, "status": "approved", "created_at": 2.0})
    fake_db.seed("affiliate_payout_requests", "pr-1", {"affiliate_uid": "aff-1", "amount": 1.5, "status": "pending"})
    login(uid="admin-1", admin=True)

    response = client.post("/api/admin/affiliate/payouts/pr-1/process")

    assert response.status_code == 200
    assert response.get_json()["payout"]["status"] == "completed"
    commissions = fake_db.docs("affiliate_commissions")
    assert commissions["c1"]["status"] == "paid"
    assert commissions["c2"]["status"] == "approved"
    affiliate = fake_db.docs("affiliate_users")["aff-1"]
    assert affiliate["unpaid_commission"] == 1.5
    assert affiliate["paid_commission"] == 1.5
    assert notified[0]["id"] == "pr-1"

    assert client.post("/api/admin/affiliate/payouts/pr-1/process").status_code == 400


def test_reject_affiliate_payout_requires_reason(client, login, fake_db):
    fake_db.seed("affiliate_payout_requests", "pr-1", {"affiliate_uid": "aff-1", "amount": 60.0, "status": "pending"})
    login(uid="admin-1", admin=True)

    assert client.post("/api/admin/affiliate/payouts/pr-1/reject", json={}).status_code == 400

    response = client.post("/api/admin/affiliate/payouts/pr-1/reject", json={"reason": "Payout email bounced"})
    assert response.status_code == 200
    stored = fake_db.docs("affiliate_payout_requests")["pr-1"]
    assert stored["status"] == "rejected"
    assert stored["rejection_reason"] == "Payout email bounced"
