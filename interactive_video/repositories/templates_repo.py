"""Firestore accessors for reusable interaction templates."""

from .query_utils import apply_where, snapshot_to_dict


def doc_ref(db, template_id=None):
    collection = db.collection('interaction_templates')
    return collection.document(template_id) if template_id else collection.document()


def get_template(db, template_id):
    if not template_id:
        return None
    return snapshot_to_dict(doc_ref(db, template_id).get())


def create_template(db, data):
    ref = doc_ref(db)
    ref.set(data)
    return ref.id


def update_template(db, template_id, updates):
    return doc_ref(db, template_id).update(updates)


def delete_template(db, template_id):
    return doc_ref(db, template_id).delete()


def list_templates(db, limit, uid='', public_only=False, template_type=''):
    query = db.collection('interaction_templates')
    if public_only:
        query = apply_where(query, 'is_public', '==', True)
    else:
        query = apply_where(query, 'uid', '==', uid)
    if template_type:
        query = apply_where(query, 'type', '==', template_type)
    return [snapshot_to_dict(doc) for doc in query.limit(limit).stream()]
