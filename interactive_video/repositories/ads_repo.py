"""Firestore accessors for ads, impressions and clicks."""

from .query_utils import apply_where, snapshot_to_dict


def doc_ref(db, ad_id):
    return db.collection('ads').document(ad_id)


def get_ad(db, ad_id):
    if not ad_id:
        return None
    return snapshot_to_dict(doc_ref(db, ad_id).get())


def create_ad(db, data):
    ref = db.collection('ads').document()
    ref.set(data)
    return ref.id


def update_ad(db, ad_id, updates):
    return doc_ref(db, ad_id).update(updates)


def increment_counter(db, ad_id, field_name, firestore_module):
    return doc_ref(db, ad_id).update({field_name: firestore_module.Increment(1)})


def list_active_by_format(db, ad_format, limit):
    query = apply_where(db.collection('ads'), 'format', '==', ad_format)
    query = apply_where(query, 'status', '==', 'active').limit(limit)
    return list(query.stream())


def add_impression(db, payload):
    ref = db.collection('ad_impressions').document()
    ref.set(payload)
    return ref.id


def get_impression(db, impression_id):
    if not impression_id:
        return None
    return snapshot_to_dict(db.collection('ad_impressions').document(impression_id).get())


def click_ref(db, impression_id):
    return db.collection('ad_clicks').document(impression_id)
