"""Firestore accessors for share links. Document id is the share token."""

from .query_utils import apply_where, snapshot_to_dict


def doc_ref(db, token):
    return db.collection('share_links').document(token)


def get_link(db, token):
    if not token:
        return None
    return snapshot_to_dict(doc_ref(db, token).get())


def create_link(db, token, data):
    return doc_ref(db, token).set(data)


def delete_link(db, token):
    return doc_ref(db, token).delete()


def increment_views(db, token, firestore_module):
    return doc_ref(db, token).update({'views': firestore_module.Increment(1)})


def list_for_video(db, video_id, limit):
    query = apply_where(db.collection('share_links'), 'video_id', '==', video_id).limit(limit)
    return list(query.stream())
