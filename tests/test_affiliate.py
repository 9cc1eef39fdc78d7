import random

import pytest

from interactive_video import runtime
from interactive_video.services import affiliate_service

PROGRAM = {
    "name": "Creator Referral Program",
    "description": "Earn a share of every subscription.",
    "active": True,
    "commission_rate": 0.2,
    "signup_bonus": 1.0,
    "min_payout": 50.0,
    "cookie_duration_days": 30,
}


@pytest.fixture(autouse=True)
def program(monkeypatch):
    monkeypatch.setattr(runtime, "AFFILIATE_PROGRAM", dict(PROGRAM))
    return runtime.AFFILIATE_PROGRAM


def _seed_affiliate(fake_db, uid="aff-1", code="ABCD1234", **overrides):
    affiliate = {
        "uid": uid,
        "referral_code": code,
        "status": "active",
        "total_referrals": 0,
        "total_commission": 0.0,
        "unpaid_commission": 0.0,
        "paid_commission": 0.0,
        "payout_method": "paypal",
        "payout_email": "aff@example.com",
    }
    affiliate.update(overrides)
    return fake_db.seed("affiliate_users", uid, affiliate)


def test_normalize_code():
    assert affiliate_service.normalize_code(" abcd1234 ") == "ABCD1234"
    assert affiliate_service.normalize_code("ABC") == ""
    assert affiliate_service.normalize_code("ABCD-123") == ""


def test_summarize_commissions_ignores_rejected():
    stats = affiliate_service.summarize_commissions([
        {"amount": 1.0, "status": "pending"},
        {"amount": 2.5, "status": "approved"},
        {"amount": 4.0, "status": "paid"},
        {"amount": 100.0, "status": "rejected"},
    ])

    assert stats == {"pending_amount": 1.0, "approved_amount": 2.5, "paid_amount": 4.0, "total_amount": 7.5}


def test_commission_requires_confirmed_referral(fake_db):
    _seed_affiliate(fake_db)
    fake_db.seed("affiliate_referrals", "viewer-1", {"affiliate_uid": "aff-1", "status": "pending"})

    assert affiliate_service.create_commission(
        fake_db, "viewer-1", 10.0, "subscription", "in_1", program=PROGRAM, firestore_module=runtime.firestore, now_ts=1.0,
    ) is None

    fake_db.seed("affiliate_referrals", "viewer-1", {"affiliate_uid": "aff-1", "status": "confirmed"})
    commission = affiliate_service.create_commission(
        fake_db, "viewer-1", 10.0, "subscription", "in_1", program=PROGRAM, firestore_module=runtime.firestore, now_ts=1.0,
    )
    assert commission["id"] == "subscription__in_1"
    assert commission["amount"] == 2.0
    assert affiliate_service.create_commission(
        fake_db, "viewer-1", 10.0, "subscription", "in_1", program=PROGRAM, firestore_module=runtime.firestore, now_ts=2.0,
    ) is None


def test_program_is_hidden_when_inactive(client, program):
    body = client.get("/api/affiliate/program").get_json()
    assert body["program"]["commission_rate"] == 0.2
    assert "active" not in body["program"]

    program["active"] = False
    assert client.get("/api/affiliate/program").status_code == 404


def test_track_sets_referral_cookie(client, fake_db):
    _seed_affiliate(fake_db)

    response = client.get("/api/affiliate/track?ref=abcd1234")

    assert response.get_json() == {"tracked": True}
    cookie = response.headers.get("Set-Cookie", "")
    assert "affiliate_code=ABCD1234" in cookie
    assert "HttpOnly" in cookie

    unknown = client.get("/api/affiliate/track?ref=ZZZZ9999")
    assert unknown.get_json() == {"tracked": False}
    assert "Set-Cookie" not in unknown.headers


def test_join_program_once(client, login, fake_db, monkeypatch):
    monkeypatch.setattr(random, "choice", lambda alphabet: "Q")
    login(uid="aff-2", email="aff2@example.com")

    response = client.post("/api/affiliate/join")
    assert response.status_code == 201
    affiliate = response.get_json()["affiliate"]
    assert affiliate["referral_code"] == "QQQQQQQQ"
    assert affiliate["payout_email"] == "aff2@example.com"
    assert fake_db.docs("affiliate_users")["aff-2"]["status"] == "active"

    again = client.post("/api/affiliate/join")
    assert again.status_code == 400
    assert "already" in again.get_json()["error"]


def test_referral_cookie_is_applied_on_first_profile_load(client, login, fake_db):
    _seed_affiliate(fake_db)
    login(uid="viewer-1", email="viewer@example.com")

    response = client.get("/api/auth/user", headers={"Cookie": "affiliate_code=ABCD1234"})

    assert response.status_code == 200
    referral = fake_db.docs("affiliate_referrals")["viewer-1"]
    assert referral["affiliate_uid"] == "aff-1"
    assert referral["status"] == "pending"
    assert fake_db.docs("affiliate_users")["aff-1"]["total_referrals"] == 1
    assert "affiliate_code=;" in response.headers.get("Set-Cookie", "")

    fake_db.store["affiliate_referrals"].clear()
    client.get("/api/auth/user", headers={"Cookie": "affiliate_code=ABCD1234"})
    assert fake_db.docs("affiliate_referrals") == {}


def test_affiliate_cannot_refer_themselves(client, login, fake_db):
    _seed_affiliate(fake_db)
    login(uid="aff-1")

    client.get("/api/auth/user", headers={"Cookie": "affiliate_code=ABCD1234"})

    assert fake_db.docs("affiliate_referrals") == {}


def test_dashboard_and_lists(client, login, fake_db):
    _seed_affiliate(fake_db, unpaid_commission=3.0)
    fake_db.seed("affiliate_referrals", "viewer-1", {"affiliate_uid": "aff-1", "status": "confirmed", "created_at": 1.0})
    fake_db.seed("affiliate_commissions", "signup__viewer-1", {"affiliate_uid": "aff-1", "amount": 1.0, "status": "approved", "created_at": 1.0})
    fake_db.seed("affiliate_commissions", "subscription__in_1", {"affiliate_uid": "aff-1", "amount": 2.0, "status": "pending", "created_at": 2.0})

    login(uid="viewer-1")
    assert client.get("/api/affiliate/dashboard").status_code == 404

    login(uid="aff-1")
    dashboard = client.get("/api/affiliate/dashboard").get_json()
    assert dashboard["referral_link"].endswith("/api/affiliate/track?ref=ABCD1234")
    assert dashboard["stats"]["total_amount"] == 3.0
    assert [item["id"] for item in dashboard["recent_commissions"]] == ["subscription__in_1", "signup__viewer-1"]

    approved = client.get("/api/affiliate/commissions?status=approved").get_json()
    assert [item["id"] for item in approved["commissions"]] == ["signup__viewer-1"]
    assert client.get("/api/affiliate/commissions?status=lost").status_code == 400
    assert client.get("/api/affiliate/referrals").get_json()["pagination"]["total"] == 1


def test_request_payout_reserves_unpaid_commission(client, login, fake_db):
    _seed_affiliate(fake_db, unpaid_commission=80.0)
    login(uid="aff-1")

    too_small = client.post("/api/affiliate/payouts", json={"amount": 40})
    assert too_small.status_code == 400
    assert "Minimum payout" in too_small.get_json()["error"]

    created = client.post("/api/affiliate/payouts", json={"amount": 60})
    assert created.status_code == 201
    payout = created.get_json()["payout"]
    assert payout["status"] == "pending"
    assert payout["payout_details"] == {"email": "aff@example.com"}

    over = client.post("/api/affiliate/payouts", json={"amount": 50})
    assert over.status_code == 400
    assert "20.00 available" in over.get_json()["error"]

    assert client.post("/api/affiliate/payouts", json={"amount": "60"}).status_code == 400
    assert len(client.get("/api/affiliate/payouts").get_json()["payouts"]) == 1


def test_settings_validation(client, login, fake_db):
    _seed_affiliate(fake_db)
    login(uid="aff-1")

    assert client.get("/api/affiliate/settings").get_json()["settings"]["payout_method"] == "paypal"

    invalid = client.patch("/api/affiliate/settings", json={"payout_method": "cheque", "payout_email": "bad"})
    assert invalid.status_code == 400
    assert set(invalid.get_json()["details"]) == {"payout_method", "payout_email"}
    assert client.patch("/api/affiliate/settings", json={}).status_code == 400

    updated = client.patch("/api/affiliate/settings", json={"payout_method": "Bank_Transfer", "payout_email": "Pay@Example.com"})
    assert updated.get_json()["settings"] == {"payout_method": "bank_transfer", "payout_email": "pay@example.com"}
    assert fake_db.docs("affiliate_users")["aff-1"]["payout_method"] == "bank_transfer"


class _RecordingTransaction:
    def __init__(self, writes):
        self.writes = writes

    def set(self, ref, data, merge=False):
        self.writes.append(("set", ref.id))
        ref.set(data, merge=merge)

    def update(self, ref, updates):
        self.writes.append(("update", ref.id))
        ref.update(updates)


def test_money_movements_are_written_inside_transactions(fake_db, monkeypatch):
    writes = []
    monkeypatch.setattr(fake_db, "transaction", lambda: _RecordingTransaction(writes))
    _seed_affiliate(fake_db, unpaid_commission=0.0)
    fake_db.seed("affiliate_commissions", "subscription__in_1", {"affiliate_uid": "aff-1", "amount": 60.0, "status": "pending", "created_at": 1.0})

    affiliate_service.approve_commission(fake_db, "subscription__in_1", firestore_module=runtime.firestore, now_ts=10.0)
    assert writes == [("update", "subscription__in_1"), ("update", "aff-1")]

    writes.clear()
    payout = affiliate_service.request_payout(
        fake_db, "aff-1", 60, program=PROGRAM, firestore_module=runtime.firestore, now_ts=20.0,
    )
    assert writes == [("set", payout["id"]), ("update", "aff-1")]
    assert fake_db.docs("affiliate_users")["aff-1"]["last_payout_request_at"] == 20.0

    with pytest.raises(affiliate_service.AffiliateError):
        affiliate_service.request_payout(fake_db, "aff-1", 60, program=PROGRAM, firestore_module=runtime.firestore, now_ts=21.0)

    writes.clear()
    affiliate_service.process_payout_request(fake_db, payout["id"], firestore_module=runtime.firestore, now_ts=30.0)
    assert writes == [("update", payout["id"]), ("update", "aff-1"), ("update", "subscription__in_1")]
    affiliate = fake_db.docs("affiliate_users")["aff-1"]
    assert affiliate["unpaid_commission"] == 0.0
    assert affiliate["paid_commission"] == 60.0
    assert fake_db.docs("affiliate_commissions")["subscription__in_1"]["status"] == "paid"
