"""Firestore accessors for fixed-window request counters (uploads, comments, token minting)."""

import hashlib

COUNTER_TTL_WINDOWS = 3


def window_counter_id(key, window_seconds, window_start):
    raw = f"{key}|{int(window_seconds)}|{int(window_start)}".encode('utf-8')
    return hashlib.sha256(raw).hexdigest()


def window_counter_ref(db, collection_name, key, window_seconds, window_start):
    counter_id = window_counter_id(key, window_seconds, window_start)
    return db.collection(collection_name).document(counter_id)


def window_counter_payload(key, count, window_start, window_seconds, now_ts):
    return {
        'key': key,
        'count': int(count),
        'window_start': int(window_start),
        'window_seconds': int(window_seconds),
        'updated_at': now_ts,
        'expires_at': int(window_start) + int(window_seconds) * COUNTER_TTL_WINDOWS,
    }
