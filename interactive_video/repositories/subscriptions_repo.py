"""Firestore accessors for user subscriptions and subscription payments."""

from .query_utils import apply_where, snapshot_to_dict


def doc_ref(db, uid):
    return db.collection('user_subscriptions').document(uid)


def get_subscription(db, uid):
    if not uid:
        return None
    return snapshot_to_dict(doc_ref(db, uid).get())


def set_subscription(db, uid, data, merge=True):
    return doc_ref(db, uid).set(data, merge=merge)


def find_by_stripe_subscription_id(db, stripe_subscription_id):
    query = apply_where(db.collection('user_subscriptions'), 'stripe_subscription_id', '==', stripe_subscription_id).limit(1)
    docs = list(query.stream())
    return snapshot_to_dict(docs[0]) if docs else None


def payment_ref(db, invoice_id):
    return db.collection('subscription_payments').document(invoice_id)


def count_active(db, limit):
    query = apply_where(db.collection('user_subscriptions'), 'status', 'in', ['active', 'trialing']).limit(limit)
    return len(list(query.stream()))
