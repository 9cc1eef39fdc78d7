"""Firestore accessors for comments collection."""

from .query_utils import apply_where, snapshot_to_dict


def get_comment(db, comment_id):
    if not comment_id:
        return None
    return snapshot_to_dict(db.collection('comments').document(comment_id).get())


def add_comment(db, data):
    ref = db.collection('comments').document()
    ref.set(data)
    return ref.id


def list_for_video(db, video_id, limit):
    query = apply_where(db.collection('comments'), 'video_id', '==', video_id).limit(limit)
    return list(query.stream())
