"""Firestore accessors for the affiliate program."""

from .query_utils import apply_where, snapshot_to_dict


def affiliate_ref(db, uid):
    return db.collection('affiliate_users').document(uid)


def get_affiliate(db, uid):
    if not uid:
        return None
    return snapshot_to_dict(affiliate_ref(db, uid).get())


def set_affiliate(db, uid, data):
    return affiliate_ref(db, uid).set(data)


def update_affiliate(db, uid, updates):
    return affiliate_ref(db, uid).update(updates)


def find_by_code(db, referral_code):
    query = apply_where(db.collection('affiliate_users'), 'referral_code', '==', referral_code).limit(1)
    docs = list(query.stream())
    return snapshot_to_dict(docs[0]) if docs else None


def referral_ref(db, referred_uid):
    return db.collection('affiliate_referrals').document(referred_uid)


def get_referral(db, referred_uid):
    if not referred_uid:
        return None
    return snapshot_to_dict(referral_ref(db, referred_uid).get())


def list_referrals(db, affiliate_uid, limit):
    query = apply_where(db.collection('affiliate_referrals'), 'affiliate_uid', '==', affiliate_uid).limit(limit)
    return [snapshot_to_dict(doc) for doc in query.stream()]


def commission_ref(db, commission_id=None):
    collection = db.collection('affiliate_commissions')
    return collection.document(commission_id) if commission_id else collection.document()


def get_commission(db, commission_id):
    if not commission_id:
        return None
    return snapshot_to_dict(commission_ref(db, commission_id).get())


def update_commission(db, commission_id, updates):
    return commission_ref(db, commission_id).update(updates)


def list_commissions(db, affiliate_uid, limit, status=''):
    query = apply_where(db.collection('affiliate_commissions'), 'affiliate_uid', '==', affiliate_uid)
    if status:
        query = apply_where(query, 'status', '==', status)
    return [snapshot_to_dict(doc) for doc in query.limit(limit).stream()]


def payout_request_ref(db, request_id=None):
    collection = db.collection('affiliate_payout_requests')
    return collection.document(request_id) if request_id else collection.document()


def get_payout_request(db, request_id):
    if not request_id:
        return None
    return snapshot_to_dict(payout_request_ref(db, request_id).get())


def update_payout_request(db, request_id, updates):
    return payout_request_ref(db, request_id).update(updates)


def list_payout_requests(db, affiliate_uid, limit):
    query = apply_where(db.collection('affiliate_payout_requests'), 'affiliate_uid', '==', affiliate_uid).limit(limit)
    return [snapshot_to_dict(doc) for doc in query.stream()]
