"""Firestore accessors for views, engagements, progress and access logs."""

from .query_utils import apply_where, snapshot_to_dict


def add_view(db, payload):
    ref = db.collection('video_views').document()
    ref.set(payload)
    return ref.id


def update_view(db, view_id, updates):
    return db.collection('video_views').document(view_id).update(updates)


def latest_view_for_viewer(db, video_id, uid, firestore_module):
    query = apply_where(db.collection('video_views'), 'video_id', '==', video_id)
    query = apply_where(query, 'uid', '==', uid)
    query = query.order_by('created_at', direction=firestore_module.Query.DESCENDING).limit(1)
    docs = list(query.stream())
    return docs[0] if docs else None


def list_views_for_video(db, video_id, since_ts, limit):
    query = apply_where(db.collection('video_views'), 'video_id', '==', video_id)
    query = apply_where(query, 'created_at', '>=', since_ts).limit(limit)
    return list(query.stream())


def add_engagement(db, payload):
    ref = db.collection('video_engagements').document()
    ref.set(payload)
    return ref.id


def list_engagements_for_video(db, video_id, limit, uid=''):
    query = apply_where(db.collection('video_engagements'), 'video_id', '==', video_id)
    if uid:
        query = apply_where(query, 'uid', '==', uid)
    return list(query.limit(limit).stream())


def progress_ref(db, uid, video_id):
    return db.collection('video_progress').document(f"{uid}__{video_id}")


def get_progress(db, uid, video_id):
    return snapshot_to_dict(progress_ref(db, uid, video_id).get())


def set_progress(db, uid, video_id, data):
    return progress_ref(db, uid, video_id).set(data, merge=True)


def add_interaction_result(db, payload):
    ref = db.collection('interaction_results').document()
    ref.set(payload)
    return ref.id


def add_video_access(db, payload):
    return db.collection('video_access').add(payload)


def list_creator_docs_in_window(db, collection_name, creator_id, start_ts, end_ts, limit):
    query = apply_where(db.collection(collection_name), 'creator_id', '==', creator_id)
    query = apply_where(query, 'created_at', '>=', start_ts)
    query = apply_where(query, 'created_at', '<=', end_ts).limit(limit)
    return list(query.stream())
