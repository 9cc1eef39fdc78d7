"""Firestore accessors for video categories."""

from .query_utils import apply_where, snapshot_to_dict


def list_categories(db, limit, firestore_module):
    query = db.collection('categories').order_by('order', direction=firestore_module.Query.ASCENDING).limit(limit)
    return [snapshot_to_dict(doc) for doc in query.stream()]


def find_by_slug(db, slug):
    query = apply_where(db.collection('categories'), 'slug', '==', slug).limit(1)
    docs = list(query.stream())
    return snapshot_to_dict(docs[0]) if docs else None
