"""Business logic handlers for auth/account APIs."""

from datetime import datetime, timezone


def ingest_analytics_event(app_ctx, request):
    data = request.get_json(silent=True) or {}
    decoded_token = app_ctx.verify_firebase_token(request)
    uid = decoded_token.get('uid', '') if decoded_token else ''
    email = decoded_token.get('email', '') if decoded_token else ''
    session_id = app_ctx.sanitize_analytics_session_id(data.get('session_id', ''))
    if not session_id and uid:
        session_id = uid[:80]

    actor_token = uid or session_id or app_ctx.get_client_ip(request)
    actor_key = app_ctx.normalize_rate_limit_key_part(actor_token, fallback='anon')
    allowed_analytics, retry_after = app_ctx.check_rate_limit(
        key=f"analytics:{actor_key}",
        limit=app_ctx.ANALYTICS_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.ANALYTICS_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed_analytics:
        app_ctx.log_rate_limit_hit('analytics', retry_after)
        return app_ctx.build_rate_limited_response(
            'Too many analytics events from this client. Please retry shortly.',
            retry_after,
        )

    event_name = app_ctx.sanitize_analytics_event_name(data.get('event', ''))
    if not event_name or event_name.endswith('_backend'):
        return app_ctx.jsonify({'error': 'Invalid event name'}), 400

    properties = app_ctx.sanitize_analytics_properties(data.get('properties', {}))
    properties['path'] = str(data.get('path', '') or '').strip()[:80]
    properties['page'] = str(data.get('page', '') or '').strip()[:40]

    ok = app_ctx.log_analytics_event(
        event_name,
        source='frontend',
        uid=uid,
        email=email,
        session_id=session_id,
        properties=properties,
    )
    if not ok:
        return app_ctx.jsonify({'error': 'Could not store event'}), 500
    return app_ctx.jsonify({'ok': True})


def get_user(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    try:
        user, created = app_ctx.get_or_create_user(uid, email)
        referral_code = request.cookies.get(app_ctx.AFFILIATE_COOKIE_NAME, '')
        if created and referral_code:
            referral = app_ctx.affiliate_service.create_referral(
                app_ctx.db,
                uid,
                referral_code,
                firestore_module=app_ctx.firestore,
                now_ts=app_ctx.time.time(),
            )
            if referral:
                app_ctx.log_event(app_ctx.logging.INFO, 'affiliate_referral_created',
                                  affiliate_uid=referral['affiliate_uid'], referred_uid=uid)
        is_affiliate = bool(app_ctx.affiliate_repo.get_affiliate(app_ctx.db, uid))
        is_premium = app_ctx.is_premium_user(uid)
    except Exception as e:
        app_ctx.logger.error(f"Error loading user {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load user profile'}), 500

    response = app_ctx.jsonify({
        'uid': user.get('uid', uid),
        'email': user.get('email', email),
        'display_name': user.get('display_name', ''),
        'role': user.get('role', 'viewer'),
        'created_at': user.get('created_at', 0),
        'is_admin': app_ctx.is_admin_user(decoded_token),
        'is_premium': is_premium,
        'is_affiliate': is_affiliate,
    })
    if created and referral_code:
        response.delete_cookie(app_ctx.AFFILIATE_COOKIE_NAME)
    return response


def collect_user_export_payload(app_ctx, uid, email):
    max_docs = app_ctx.ACCOUNT_EXPORT_MAX_DOCS_PER_COLLECTION
    user_doc = app_ctx.users_repo.get_doc(app_ctx.db, uid)
    collections = {}
    truncated = {}
    for collection_name in (
        'videos', 'comments', 'video_progress', 'share_links', 'interaction_templates',
        'notifications', 'payout_transactions', 'affiliate_commissions',
    ):
        uid_field = 'affiliate_uid' if collection_name == 'affiliate_commissions' else 'uid'
        records, was_truncated = app_ctx.list_docs_by_uid(collection_name, uid, max_docs, uid_field=uid_field)
        if collection_name == 'share_links':
            for record in records:
                record.pop('password_hash', None)
        collections[collection_name] = records
        truncated[collection_name] = was_truncated

    accounts, accounts_truncated = app_ctx.list_docs_by_uid('payout_accounts', uid, max_docs)
    collections['payout_accounts'] = [app_ctx.payout_service.mask_account(account) for account in accounts]
    truncated['payout_accounts'] = accounts_truncated

    return {
        'exported_at': datetime.now(timezone.utc).isoformat(),
        'uid': uid,
        'email': email,
        'profile': user_doc.to_dict() if user_doc.exists else {},
        'subscription': app_ctx.subscriptions_repo.get_subscription(app_ctx.db, uid),
        'payout_settings': app_ctx.payouts_repo.get_settings(app_ctx.db, uid, app_ctx.DEFAULT_PAYOUT_SETTINGS),
        'affiliate': app_ctx.affiliate_repo.get_affiliate(app_ctx.db, uid),
        'collections': collections,
        'truncated': truncated,
    }


def export_account_data(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401

    uid = decoded_token['uid']
    email = decoded_token.get('email', '')
    try:
        payload = collect_user_export_payload(app_ctx, uid, email)
        date_str = datetime.now(timezone.utc).strftime('%Y-%m-%d')
        response = app_ctx.jsonify(payload)
        response.headers['Content-Disposition'] = f'attachment; filename="interactive-video-account-export-{date_str}.json"'
        return response
    except Exception as e:
        app_ctx.logger.error(f"Error exporting account data for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not export account data'}), 500


def anonymize_payout_transactions(app_ctx, uid, max_docs):
    docs = app_ctx.users_repo.list_docs_by_owner(app_ctx.db, 'payout_transactions', 'uid', uid, max_docs + 1)
    anonymized = 0
    for doc in docs[:max_docs]:
        doc.reference.update({'uid': f"deleted:{app_ctx.hash_key(uid)}", 'description': ''})
        anonymized += 1
    return anonymized, len(docs) > max_docs


def delete_account_data(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401

    uid = decoded_token['uid']
    payload = request.get_json(silent=True) or {}
    if str(payload.get('confirm', '') or '').strip() != 'DELETE':
        return app_ctx.jsonify({'error': 'Invalid confirmation. Send {"confirm": "DELETE"}.'}), 400

    max_docs = app_ctx.ACCOUNT_DELETE_MAX_DOCS_PER_COLLECTION
    try:
        deleted = {}
        truncated = {}
        warnings_list = []

        for doc in app_ctx.videos_repo.list_by_uid(app_ctx.db, uid, max_docs):
            for link_doc in app_ctx.share_links_repo.list_for_video(app_ctx.db, doc.id, max_docs):
                link_doc.reference.delete()
        for collection_name in (
            'videos', 'comments', 'video_progress', 'share_links', 'interaction_templates',
            'notifications', 'payout_accounts', 'analytics_events',
        ):
            deleted[collection_name], truncated[collection_name] = app_ctx.delete_docs_by_uid(collection_name, uid, max_docs)

        deleted['payout_transactions_anonymized'], truncated['payout_transactions'] = anonymize_payout_transactions(
            app_ctx, uid, max_docs
        )

        for label, ref in (
            ('payout_settings_doc', app_ctx.payouts_repo.settings_ref(app_ctx.db, uid)),
            ('user_profile_doc', app_ctx.users_repo.doc_ref(app_ctx.db, uid)),
        ):
            try:
                ref.delete()
                deleted[label] = 1
            except Exception as e:
                deleted[label] = 0
                warnings_list.append(f"Could not delete {label}: {e}")

        auth_user_deleted = False
        try:
            app_ctx.auth.delete_user(uid)
            auth_user_deleted = True
        except Exception as e:
            warnings_list.append(f"Could not delete Firebase Auth user: {e}")

        app_ctx.log_event(app_ctx.logging.INFO, 'account_deleted', uid=uid, auth_user_deleted=auth_user_deleted)
        return app_ctx.jsonify({
            'ok': True,
            'auth_user_deleted': auth_user_deleted,
            'deleted': deleted,
            'truncated': truncated,
            'warnings': warnings_list,
        })
    except Exception as e:
        app_ctx.logger.error(f"Error deleting account data for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete account data'}), 500
