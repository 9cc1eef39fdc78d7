"""Business logic handlers for in-app notifications."""

MAX_NOTIFICATIONS = 50
MAX_UNREAD_SCAN = 1000
MAX_CLEAR_DOCS = 2000
NOTIFICATION_TYPES = ('payout', 'affiliate', 'comment', 'system')


def build_notification(uid, title, message, notification_type, now_ts, action_url='', action_text=''):
    return {
        'uid': uid,
        'title': str(title or '').strip()[:200],
        'message': str(message or '').strip()[:1000],
        'type': notification_type if notification_type in NOTIFICATION_TYPES else 'system',
        'read': False,
        'action_url': str(action_url or '')[:500],
        'action_text': str(action_text or '')[:60],
        'created_at': now_ts,
        'updated_at': now_ts,
    }


def list_notifications(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401
    uid = decoded_token['uid']
    try:
        notifications = app_ctx.notifications_repo.list_for_uid(app_ctx.db, uid, MAX_NOTIFICATIONS, app_ctx.firestore)
        unread_count = len(app_ctx.notifications_repo.list_unread_docs(app_ctx.db, uid, MAX_UNREAD_SCAN))
    except Exception as e:
        app_ctx.logger.error(f"Error loading notifications for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load notifications'}), 500
    return app_ctx.jsonify({'notifications': notifications, 'unread_count': unread_count})


def mark_all_read(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401
    uid = decoded_token['uid']
    now_ts = app_ctx.time.time()
    try:
        docs = app_ctx.notifications_repo.list_unread_docs(app_ctx.db, uid, MAX_UNREAD_SCAN)
        for doc in docs:
            doc.reference.update({'read': True, 'updated_at': now_ts})
    except Exception as e:
        app_ctx.logger.error(f"Error marking notifications read for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not mark notifications as read'}), 500
    return app_ctx.jsonify({'ok': True, 'updated': len(docs)})


def clear_all(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Authentication required'}), 401
    deleted, truncated = app_ctx.delete_docs_by_uid('notifications', decoded_token['uid'], MAX_CLEAR_DOCS)
    return app_ctx.jsonify({'ok': True, 'deleted': deleted, 'truncated': truncated})
