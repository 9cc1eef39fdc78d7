"""Business logic handlers for ad serving, clicks and ad management."""


def should_show_ads(app_ctx, decoded_token):
    if not decoded_token:
        return True
    return not app_ctx.is_premium_user(decoded_token.get('uid', ''))


def get_request_country(request):
    country = str(request.headers.get('CF-IPCountry', '') or request.headers.get('X-Country', '') or '').strip().upper()
    return country[:2] if country.isalpha() else ''


def serve_ads(app_ctx, request):
    ad_format = str(request.args.get('format', '') or '').strip().lower()
    if ad_format not in app_ctx.ad_service.AD_FORMATS:
        return app_ctx.jsonify({'error': 'Invalid ad format'}), 400
    decoded_token = app_ctx.verify_firebase_token(request)
    if not should_show_ads(app_ctx, decoded_token):
        return app_ctx.jsonify({'ads': [], 'show_ads': False})

    video_id = str(request.args.get('video_id', '') or '').strip()[:128]
    try:
        creator_id = ''
        if video_id:
            video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
            creator_id = (video or {}).get('uid', '')
        ads = app_ctx.ad_service.serve_ads(
            app_ctx.db,
            ad_format,
            country=get_request_country(request),
            device=app_ctx.ad_service.detect_device(request.headers.get('User-Agent', '')),
            video_id=video_id,
            viewer_uid=decoded_token.get('uid', '') if decoded_token else '',
            creator_id=creator_id,
            ip_hash=app_ctx.hash_key(app_ctx.get_client_ip(request)),
            firestore_module=app_ctx.firestore,
            now_ts=app_ctx.time.time(),
        )
    except Exception as e:
        app_ctx.logger.error(f"Error serving {ad_format} ads: {e}")
        return app_ctx.jsonify({'error': 'Could not load ads'}), 500
    return app_ctx.jsonify({'ads': ads, 'show_ads': True})


def record_click(app_ctx, request):
    ip_key = app_ctx.normalize_rate_limit_key_part(app_ctx.get_client_ip(request), fallback='unknown_ip')
    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"ad_click:{ip_key}",
        limit=app_ctx.AD_CLICK_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.AD_CLICK_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('ad_click', retry_after)
        return app_ctx.build_rate_limited_response('Too many ad clicks. Please wait.', retry_after)

    data = request.get_json(silent=True) or {}
    ad_id = str(data.get('ad_id', '') or '').strip()
    impression_id = str(data.get('impression_id', '') or '').strip()
    if not ad_id or not impression_id:
        return app_ctx.jsonify({'error': 'ad_id and impression_id are required'}), 400
    try:
        status, impression = app_ctx.ad_service.record_click(
            app_ctx.db, ad_id, impression_id, firestore_module=app_ctx.firestore, now_ts=app_ctx.time.time(),
        )
    except Exception as e:
        app_ctx.logger.error(f"Error recording click for ad {ad_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not record click'}), 500
    if status == 'not_found':
        return app_ctx.jsonify({'error': 'Impression not found'}), 404
    ad = app_ctx.ads_repo.get_ad(app_ctx.db, ad_id) or {}
    return app_ctx.jsonify({
        'success': True,
        'duplicate': status == 'duplicate',
        'target_url': ad.get('target_url', ''),
    })


def get_performance(app_ctx, request, ad_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    ad = app_ctx.ads_repo.get_ad(app_ctx.db, ad_id)
    if not ad:
        return app_ctx.jsonify({'error': 'Ad not found'}), 404
    if ad.get('advertiser_id') != decoded_token['uid'] and not app_ctx.is_admin_user(decoded_token):
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    return app_ctx.jsonify({'performance': app_ctx.ad_service.compute_performance(ad, app_ctx.AD_CPM_USD)})


def is_advertiser(app_ctx, decoded_token):
    if app_ctx.is_admin_user(decoded_token):
        return True
    user_doc = app_ctx.users_repo.get_doc(app_ctx.db, decoded_token['uid'])
    return user_doc.exists and (user_doc.to_dict() or {}).get('role') == 'advertiser'


def create_ad(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if not is_advertiser(app_ctx, decoded_token):
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    fields, errors = app_ctx.ad_service.validate_ad_payload(request.get_json(silent=True) or {})
    if errors:
        return app_ctx.jsonify({'error': 'Invalid ad', 'details': errors}), 400
    now_ts = app_ctx.time.time()
    ad = dict(fields)
    ad.update({
        'advertiser_id': decoded_token['uid'],
        'impressions': 0,
        'clicks': 0,
        'created_at': now_ts,
        'updated_at': now_ts,
    })
    try:
        ad['id'] = app_ctx.ads_repo.create_ad(app_ctx.db, ad)
    except Exception as e:
        app_ctx.logger.error(f"Error creating ad: {e}")
        return app_ctx.jsonify({'error': 'Could not create ad'}), 500
    return app_ctx.jsonify({'ad': ad}), 201


def update_ad(app_ctx, request, ad_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    ad = app_ctx.ads_repo.get_ad(app_ctx.db, ad_id)
    if not ad:
        return app_ctx.jsonify({'error': 'Ad not found'}), 404
    if ad.get('advertiser_id') != decoded_token['uid'] and not app_ctx.is_admin_user(decoded_token):
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    fields, errors = app_ctx.ad_service.validate_ad_payload(request.get_json(silent=True) or {}, partial=True, existing=ad)
    if errors:
        return app_ctx.jsonify({'error': 'Invalid ad', 'details': errors}), 400
    if not fields:
        return app_ctx.jsonify({'error': 'No updatable fields provided'}), 400
    fields['updated_at'] = app_ctx.time.time()
    try:
        app_ctx.ads_repo.update_ad(app_ctx.db, ad_id, fields)
    except Exception as e:
        app_ctx.logger.error(f"Error updating ad {ad_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not update ad'}), 500
    ad.update(fields)
    return app_ctx.jsonify({'ad': ad})
