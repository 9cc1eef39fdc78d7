"""Shared Firestore query helpers.

Uses keyword-based filters to avoid positional-argument warnings in newer
Firestore SDK versions. Falls back to positional style for simple test doubles
that do not support keyword filters.
"""

from google.cloud.firestore_v1.base_query import FieldFilter


def apply_where(query, field_path, op_string, value):
    try:
        return query.where(filter=FieldFilter(field_path, op_string, value))
    except TypeError:
        return query.where(field_path, op_string, value)


def apply_filters(query, filters):
    for field_path, op_string, value in filters:
        query = apply_where(query, field_path, op_string, value)
    return query


def snapshot_to_dict(doc):
    """Return the snapshot payload with its id, or None for missing docs."""
    if doc is None or not doc.exists:
        return None
    data = doc.to_dict() or {}
    data['id'] = doc.id
    return data
