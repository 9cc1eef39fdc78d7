"""Firestore accessors for in-app notifications."""

from .query_utils import apply_where, snapshot_to_dict


def add_notification(db, data):
    ref = db.collection('notifications').document()
    ref.set(data)
    return ref.id


def list_for_uid(db, uid, limit, firestore_module):
    query = apply_where(db.collection('notifications'), 'uid', '==', uid)
    query = query.order_by('created_at', direction=firestore_module.Query.DESCENDING).limit(limit)
    return [snapshot_to_dict(doc) for doc in query.stream()]


def list_unread_docs(db, uid, limit):
    query = apply_where(db.collection('notifications'), 'uid', '==', uid)
    query = apply_where(query, 'read', '==', False).limit(limit)
    return list(query.stream())
