"""Firestore accessors for videos collection."""

from .query_utils import apply_where, snapshot_to_dict


def doc_ref(db, video_id):
    return db.collection('videos').document(video_id)


def get_doc(db, video_id):
    return doc_ref(db, video_id).get()


def get_video(db, video_id):
    if not video_id:
        return None
    return snapshot_to_dict(get_doc(db, video_id))


def create_video(db, data):
    ref = db.collection('videos').document()
    ref.set(data)
    return ref.id


def update_doc(db, video_id, updates):
    return doc_ref(db, video_id).update(updates)


def delete_doc(db, video_id):
    return doc_ref(db, video_id).delete()


def increment_views(db, video_id, firestore_module, amount=1):
    return doc_ref(db, video_id).update({'views': firestore_module.Increment(amount)})


def list_public(db, limit, firestore_module, category='', tag='', creator=''):
    query = apply_where(db.collection('videos'), 'visibility', '==', 'public')
    if category:
        query = apply_where(query, 'category', '==', category)
    if tag:
        query = apply_where(query, 'tags', 'array_contains', tag)
    if creator:
        query = apply_where(query, 'uid', '==', creator)
    query = query.order_by('created_at', direction=firestore_module.Query.DESCENDING).limit(limit)
    return list(query.stream())


def list_by_uid(db, uid, limit):
    query = apply_where(db.collection('videos'), 'uid', '==', uid).limit(limit)
    return list(query.stream())


def list_creator_ids(db, limit):
    creator_ids = set()
    for doc in db.collection('videos').limit(limit).stream():
        uid = (doc.to_dict() or {}).get('uid', '')
        if uid:
            creator_ids.add(uid)
    return sorted(creator_ids)
