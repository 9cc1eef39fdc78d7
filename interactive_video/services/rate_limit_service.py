"""Fixed-window rate limiting backed by Firestore, with an in-memory fallback."""

from interactive_video.repositories import rate_limit_repo


def check_rate_limit_firestore(
    key,
    limit,
    window_seconds,
    now_ts,
    *,
    firestore_enabled,
    db,
    firestore_module,
    counter_collection,
):
    """Return (allowed, retry_after), or None when Firestore cannot answer."""
    if not firestore_enabled or db is None:
        return None
    window_start = int(now_ts // window_seconds) * int(window_seconds)
    retry_after = max(1, int((window_start + window_seconds) - now_ts))
    counter_ref = rate_limit_repo.window_counter_ref(db, counter_collection, key, window_seconds, window_start)
    try:
        transaction = db.transaction()

        @firestore_module.transactional
        def _txn(txn):
            snapshot = counter_ref.get(transaction=txn)
            count = 0
            if snapshot.exists:
                count = int((snapshot.to_dict() or {}).get('count', 0) or 0)
            if count >= limit:
                return False, retry_after
            txn.set(
                counter_ref,
                rate_limit_repo.window_counter_payload(key, count + 1, window_start, window_seconds, now_ts),
                merge=True,
            )
            return True, 0

        return _txn(transaction)
    except Exception:
        return None


def check_rate_limit_memory(key, limit, window_seconds, now_ts, *, events, lock):
    with lock:
        cutoff = now_ts - window_seconds
        kept = [ts for ts in events.get(key, []) if ts >= cutoff]
        if len(kept) >= limit:
            events[key] = kept
            return False, max(1, int((kept[0] + window_seconds) - now_ts))
        kept.append(now_ts)
        events[key] = kept
    return True, 0


def check_rate_limit(
    key,
    limit,
    window_seconds,
    *,
    firestore_enabled,
    db,
    firestore_module,
    counter_collection,
    in_memory_events,
    in_memory_lock,
    time_module,
):
    now_ts = time_module.time()
    firestore_result = check_rate_limit_firestore(
        key,
        limit,
        window_seconds,
        now_ts,
        firestore_enabled=firestore_enabled,
        db=db,
        firestore_module=firestore_module,
        counter_collection=counter_collection,
    )
    if firestore_result is not None:
        return firestore_result
    return check_rate_limit_memory(key, limit, window_seconds, now_ts, events=in_memory_events, lock=in_memory_lock)
