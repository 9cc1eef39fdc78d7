"""Firestore accessors for users collection."""

from .query_utils import apply_where


def doc_ref(db, uid):
    return db.collection('users').document(uid)


def get_doc(db, uid):
    return doc_ref(db, uid).get()


def set_doc(db, uid, data, merge=False):
    return doc_ref(db, uid).set(data, merge=merge)


def update_doc(db, uid, updates):
    return doc_ref(db, uid).update(updates)


def delete_doc(db, uid):
    return doc_ref(db, uid).delete()


def get_users_by_ids(db, uids):
    users = {}
    for uid in {u for u in uids if u}:
        doc = get_doc(db, uid)
        if doc.exists:
            users[uid] = doc.to_dict() or {}
    return users


def list_docs_by_owner(db, collection_name, owner_field, uid, limit):
    query = apply_where(db.collection(collection_name), owner_field, '==', uid).limit(limit)
    return list(query.stream())
