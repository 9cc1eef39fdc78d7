"""Firestore accessors for payout rates and earnings periods."""

from .query_utils import apply_where, snapshot_to_dict


def list_active_rates(db, limit=20):
    query = apply_where(db.collection('payout_rates'), 'active', '==', True).limit(limit)
    return list(query.stream())


def period_ref(db, period_id):
    return db.collection('earnings_periods').document(period_id)


def get_period(db, period_id):
    if not period_id:
        return None
    return snapshot_to_dict(period_ref(db, period_id).get())


def create_period(db, data):
    ref = db.collection('earnings_periods').document()
    ref.set(data)
    return ref.id


def update_period(db, period_id, updates):
    return period_ref(db, period_id).update(updates)


def list_for_uid(db, uid, limit, status=''):
    query = apply_where(db.collection('earnings_periods'), 'uid', '==', uid)
    if status:
        query = apply_where(query, 'status', '==', status)
    return list(query.limit(limit).stream())
