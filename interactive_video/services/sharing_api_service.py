"""Business logic handlers for share links and embeds."""

from interactive_video.services import element_service, share_service
from interactive_video.services.videos_api_service import load_owned_video

MAX_LINKS_PER_VIDEO = 500
SHARED_VIDEO_FIELDS = ('title', 'description', 'source', 'source_url', 'thumbnail_url', 'duration', 'tags', 'category')


def create_share_link(app_ctx, request, video_id):
    decoded_token, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    now_ts = app_ctx.time.time()
    settings, password, expires_at, errors = share_service.validate_share_settings(request.get_json(silent=True) or {}, now_ts)
    if errors:
        return app_ctx.jsonify({'error': 'Invalid share settings', 'details': errors}), 400

    token = share_service.generate_share_token()
    link = {
        'token': token,
        'video_id': video_id,
        'uid': decoded_token['uid'],
        'settings': settings,
        'password_hash': share_service.hash_share_password(password),
        'expires_at': expires_at,
        'views': 0,
        'created_at': now_ts,
    }
    try:
        app_ctx.share_links_repo.create_link(app_ctx.db, token, link)
    except Exception as e:
        app_ctx.logger.error(f"Error creating share link for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not create share link'}), 500
    app_ctx.log_event(app_ctx.logging.INFO, 'share_link_created', uid=decoded_token['uid'], video_id=video_id,
                      password_protected=bool(password), expires_at=expires_at)
    return app_ctx.jsonify(share_service.serialize_link(app_ctx.get_public_base_url(request), link)), 201


def list_share_links(app_ctx, request, video_id):
    _, _, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    try:
        docs = app_ctx.share_links_repo.list_for_video(app_ctx.db, video_id, MAX_LINKS_PER_VIDEO)
    except Exception as e:
        app_ctx.logger.error(f"Error listing share links for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load share links'}), 500
    base_url = app_ctx.get_public_base_url(request)
    links = []
    for doc in docs:
        link = doc.to_dict() or {}
        link['id'] = doc.id
        links.append(link)
    links.sort(key=lambda item: item.get('created_at', 0) or 0, reverse=True)
    return app_ctx.jsonify({'share_links': [share_service.serialize_link(base_url, link) for link in links]})


def delete_share_link(app_ctx, request, video_id, token):
    _, _, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    link = app_ctx.share_links_repo.get_link(app_ctx.db, token)
    if not link or link.get('video_id') != video_id:
        return app_ctx.jsonify({'error': 'Share link not found'}), 404
    try:
        app_ctx.share_links_repo.delete_link(app_ctx.db, token)
    except Exception as e:
        app_ctx.logger.error(f"Error deleting share link {token}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete share link'}), 500
    return app_ctx.jsonify({'ok': True})


def load_shared_video(app_ctx, request, token):
    """Apply the share-link gates. Returns (link, settings, video, error_response)."""
    link = app_ctx.share_links_repo.get_link(app_ctx.db, token)
    supplied_password = str(request.headers.get('X-Share-Password', '') or '')
    if link and link.get('password_hash') and supplied_password:
        ip_key = app_ctx.normalize_rate_limit_key_part(app_ctx.get_client_ip(request), fallback='unknown_ip')
        allowed, retry_after = app_ctx.check_rate_limit(
            key=f"share_password:{app_ctx.normalize_rate_limit_key_part(token)}:{ip_key}",
            limit=app_ctx.SHARE_PASSWORD_RATE_LIMIT_MAX_REQUESTS,
            window_seconds=app_ctx.SHARE_PASSWORD_RATE_LIMIT_WINDOW_SECONDS,
        )
        if not allowed:
            app_ctx.log_rate_limit_hit('share_password', retry_after)
            return None, None, None, app_ctx.build_rate_limited_response(
                'Too many password attempts. Please wait before trying again.', retry_after,
            )
    status, error_payload = share_service.check_share_access(link, app_ctx.time.time(), supplied_password)
    if status != 200:
        return None, None, None, (app_ctx.jsonify(error_payload), status)

    settings = dict(share_service.DEFAULT_SHARE_SETTINGS)
    settings.update(link.get('settings') or {})
    if not settings.get('allow_sharing'):
        return None, None, None, (app_ctx.jsonify({'error': 'Sharing is disabled for this link'}), 403)
    video = app_ctx.videos_repo.get_video(app_ctx.db, link.get('video_id', ''))
    if not video:
        return None, None, None, (app_ctx.jsonify({'error': 'Video not found'}), 404)
    return link, settings, video, None


def _shared_elements(video, settings):
    if not settings.get('show_interactions'):
        return []
    return [
        element_service.public_element(element)
        for element in element_service.sort_elements(video.get('interactive_elements', []) or [])
    ]


def get_shared_video(app_ctx, request, token):
    try:
        _, settings, video, error = load_shared_video(app_ctx, request, token)
        if error:
            return error
        if settings.get('track_views'):
            app_ctx.share_links_repo.increment_views(app_ctx.db, token, app_ctx.firestore)
        creator = app_ctx.users_repo.get_users_by_ids(app_ctx.db, [video.get('uid', '')]).get(video.get('uid', ''), {})
    except Exception as e:
        app_ctx.logger.error(f"Error loading shared video {token}: {e}")
        return app_ctx.jsonify({'error': 'Could not load shared video'}), 500

    payload = {key: video.get(key) for key in SHARED_VIDEO_FIELDS}
    payload['id'] = video['id']
    interaction_settings = dict(element_service.DEFAULT_INTERACTION_SETTINGS)
    interaction_settings.update(video.get('interaction_settings') or {})
    payload['interaction_settings'] = interaction_settings
    return app_ctx.jsonify({
        'video': payload,
        'creator': {'uid': video.get('uid', ''), 'display_name': creator.get('display_name', '')},
        'settings': settings,
        'elements': _shared_elements(video, settings),
        'share_token': token,
    })


def get_shared_interactions(app_ctx, request, token):
    try:
        _, settings, video, error = load_shared_video(app_ctx, request, token)
    except Exception as e:
        app_ctx.logger.error(f"Error loading shared interactions {token}: {e}")
        return app_ctx.jsonify({'error': 'Could not load interactions'}), 500
    if error:
        return error
    return app_ctx.jsonify({'elements': _shared_elements(video, settings)})


def submit_shared_result(app_ctx, request, token, element_id):
    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"interaction:{app_ctx.normalize_rate_limit_key_part(app_ctx.get_client_ip(request), fallback='unknown_ip')}",
        limit=app_ctx.INTERACTION_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.INTERACTION_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('interaction', retry_after)
        return app_ctx.build_rate_limited_response('Too many responses. Please slow down.', retry_after)

    _, settings, video, error = load_shared_video(app_ctx, request, token)
    if error:
        return error
    if not settings.get('allow_interaction_submissions') or not settings.get('show_interactions'):
        return app_ctx.jsonify({'error': 'Interaction submissions are disabled for this link'}), 403
    element = element_service.find_element(video, element_id)
    if not element:
        return app_ctx.jsonify({'error': 'Element not found'}), 404

    data = request.get_json(silent=True) or {}
    if 'response' not in data:
        return app_ctx.jsonify({'error': 'response is required'}), 400
    response_value = data.get('response')
    response_error = element_service.validate_response(element, response_value)
    if response_error:
        return app_ctx.jsonify({'error': response_error}), 400

    decoded_token = app_ctx.verify_firebase_token(request)
    is_correct = element_service.evaluate_response(element, response_value)
    result = {
        'share_token': token,
        'video_id': video['id'],
        'creator_id': video.get('uid', ''),
        'element_id': element_id,
        'element_type': element.get('type', ''),
        'response': response_value,
        'is_correct': is_correct,
        'uid': decoded_token.get('uid', '') if decoded_token else '',
        'ip': app_ctx.hash_key(app_ctx.get_client_ip(request)),
        'created_at': app_ctx.time.time(),
    }
    try:
        result['id'] = app_ctx.engagement_repo.add_interaction_result(app_ctx.db, result)
    except Exception as e:
        app_ctx.logger.error(f"Error storing shared interaction result for {token}: {e}")
        return app_ctx.jsonify({'error': 'Could not save result'}), 500
    result.pop('ip', None)
    return app_ctx.jsonify({'result': result, 'is_correct': is_correct}), 201
