"""Firestore accessors for payout accounts, settings and transactions."""

from .query_utils import apply_where, snapshot_to_dict


def account_ref(db, account_id):
    return db.collection('payout_accounts').document(account_id)


def get_account(db, account_id):
    if not account_id:
        return None
    return snapshot_to_dict(account_ref(db, account_id).get())


def create_account(db, data):
    ref = db.collection('payout_accounts').document()
    ref.set(data)
    return ref.id


def update_account(db, account_id, updates):
    return account_ref(db, account_id).update(updates)


def delete_account(db, account_id):
    return account_ref(db, account_id).delete()


def list_accounts(db, uid, limit=50):
    query = apply_where(db.collection('payout_accounts'), 'uid', '==', uid).limit(limit)
    return [snapshot_to_dict(doc) for doc in query.stream()]


def settings_ref(db, uid):
    return db.collection('payout_settings').document(uid)


def get_settings(db, uid, defaults):
    settings = dict(defaults)
    doc = settings_ref(db, uid).get()
    if doc.exists:
        settings.update(doc.to_dict() or {})
    settings['uid'] = uid
    return settings


def set_settings(db, uid, data):
    return settings_ref(db, uid).set(data, merge=True)


def list_automatic_settings(db, limit):
    query = apply_where(db.collection('payout_settings'), 'automatic_payouts', '==', True).limit(limit)
    return list(query.stream())


def transaction_ref(db, transaction_id=None):
    collection = db.collection('payout_transactions')
    return collection.document(transaction_id) if transaction_id else collection.document()


def get_transaction(db, transaction_id):
    if not transaction_id:
        return None
    return snapshot_to_dict(transaction_ref(db, transaction_id).get())


def update_transaction(db, transaction_id, updates):
    return transaction_ref(db, transaction_id).update(updates)


def list_transactions(db, uid, limit, statuses=None):
    query = apply_where(db.collection('payout_transactions'), 'uid', '==', uid)
    if statuses:
        query = apply_where(query, 'status', 'in', list(statuses))
    return [snapshot_to_dict(doc) for doc in query.limit(limit).stream()]
