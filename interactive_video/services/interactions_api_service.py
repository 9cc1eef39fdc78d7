"""Business logic handlers for interactive elements and viewer responses."""

from interactive_video.services import element_service
from interactive_video.services.videos_api_service import can_view_video, load_owned_video

MAX_RESPONSES = 5000


def _save_elements(app_ctx, video_id, elements):
    ordered = element_service.sort_elements(elements)
    app_ctx.videos_repo.update_doc(app_ctx.db, video_id, {
        'interactive_elements': ordered,
        'updated_at': app_ctx.time.time(),
    })
    return ordered


def list_elements(app_ctx, request, video_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video:
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    if not can_view_video(app_ctx, video, decoded_token):
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    is_owner = bool(decoded_token) and decoded_token.get('uid') == video.get('uid')
    elements = [
        element_service.public_element(element, include_answers=is_owner)
        for element in element_service.sort_elements(video.get('interactive_elements', []) or [])
    ]
    return app_ctx.jsonify({'elements': elements})


def create_element(app_ctx, request, video_id):
    _, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    elements = list(video.get('interactive_elements', []) or [])
    if len(elements) >= element_service.MAX_ELEMENTS_PER_VIDEO:
        return app_ctx.jsonify({'error': f'A video can have at most {element_service.MAX_ELEMENTS_PER_VIDEO} elements'}), 400
    raw = request.get_json(silent=True)
    if isinstance(raw, dict):
        raw = dict(raw)
        raw.pop('id', None)
    element, errors = element_service.validate_element(raw, video_duration=float(video.get('duration', 0) or 0))
    if errors:
        return app_ctx.jsonify({'error': 'Invalid element', 'details': errors}), 400
    try:
        _save_elements(app_ctx, video_id, elements + [element])
    except Exception as e:
        app_ctx.logger.error(f"Error adding element to video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not save element'}), 500
    return app_ctx.jsonify({'element': element}), 201


def update_element(app_ctx, request, video_id, element_id):
    _, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    existing = element_service.find_element(video, element_id)
    if not existing:
        return app_ctx.jsonify({'error': 'Element not found'}), 404
    raw = request.get_json(silent=True)
    if not isinstance(raw, dict):
        return app_ctx.jsonify({'error': 'Invalid element', 'details': {'element': 'Element must be an object'}}), 400
    merged = dict(existing)
    merged.update(raw)
    element, errors = element_service.validate_element(
        merged, video_duration=float(video.get('duration', 0) or 0), element_id=element_id,
    )
    if errors:
        return app_ctx.jsonify({'error': 'Invalid element', 'details': errors}), 400
    elements = [element if item.get('id') == element_id else item for item in video.get('interactive_elements', [])]
    try:
        _save_elements(app_ctx, video_id, elements)
    except Exception as e:
        app_ctx.logger.error(f"Error updating element {element_id} on video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not save element'}), 500
    return app_ctx.jsonify({'element': element})


def delete_element(app_ctx, request, video_id, element_id):
    _, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    elements = video.get('interactive_elements', []) or []
    remaining = [item for item in elements if item.get('id') != element_id]
    if len(remaining) == len(elements):
        return app_ctx.jsonify({'error': 'Element not found'}), 404
    try:
        _save_elements(app_ctx, video_id, remaining)
    except Exception as e:
        app_ctx.logger.error(f"Error deleting element {element_id} on video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete element'}), 500
    return app_ctx.jsonify({'ok': True})


def generate_elements(app_ctx, request, video_id):
    decoded_token, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    uid = decoded_token['uid']
    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"ai_generation:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.AI_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.AI_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('ai_generation', retry_after)
        return app_ctx.build_rate_limited_response('Too many generation requests. Please wait.', retry_after)

    params, errors = app_ctx.ai_service.validate_generation_request(request.get_json(silent=True) or {})
    if errors:
        return app_ctx.jsonify({'error': 'Invalid input', 'details': errors}), 400
    try:
        drafts = app_ctx.generate_interaction_drafts(video, **params)
    except app_ctx.ai_service.AIUnavailableError:
        return app_ctx.jsonify({'error': 'AI generation is not configured'}), 503
    except Exception as e:
        app_ctx.logger.error(f"Error generating interactions for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Failed to generate interactions'}), 500
    return app_ctx.jsonify({'interactions': drafts})


def submit_response(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"interaction:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.INTERACTION_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.INTERACTION_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('interaction', retry_after)
        return app_ctx.build_rate_limited_response('Too many responses. Please slow down.', retry_after)

    data = request.get_json(silent=True) or {}
    video_id = str(data.get('video_id', '') or '').strip()
    element_id = str(data.get('element_id', '') or '').strip()
    if not video_id or not element_id or 'response' not in data:
        return app_ctx.jsonify({'error': 'video_id, element_id and response are required'}), 400

    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video or not can_view_video(app_ctx, video, decoded_token):
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    element = element_service.find_element(video, element_id)
    if not element:
        return app_ctx.jsonify({'error': 'Element not found'}), 404
    response_value = data.get('response')
    response_error = element_service.validate_response(element, response_value)
    if response_error:
        return app_ctx.jsonify({'error': response_error}), 400

    timestamp = data.get('timestamp')
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)) or timestamp < 0:
        timestamp = element.get('timestamp', 0)
    is_correct = element_service.evaluate_response(element, response_value)
    engagement = {
        'video_id': video_id,
        'creator_id': video.get('uid', ''),
        'uid': uid,
        'element_id': element_id,
        'element_type': element.get('type', ''),
        'response': response_value,
        'is_correct': is_correct,
        'timestamp': float(timestamp),
        'created_at': app_ctx.time.time(),
    }
    try:
        engagement['id'] = app_ctx.engagement_repo.add_engagement(app_ctx.db, engagement)
    except Exception as e:
        app_ctx.logger.error(f"Error storing interaction response for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not save response'}), 500

    feedback = element.get('feedback') or {}
    message = ''
    if is_correct is True:
        message = feedback.get('correct', '')
    elif is_correct is False:
        message = feedback.get('incorrect', '')
    return app_ctx.jsonify({'response': engagement, 'is_correct': is_correct, 'feedback': message}), 201


def list_responses(app_ctx, request, video_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video:
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    is_owner = video.get('uid') == uid
    try:
        docs = app_ctx.engagement_repo.list_engagements_for_video(
            app_ctx.db, video_id, MAX_RESPONSES, uid='' if is_owner else uid,
        )
    except Exception as e:
        app_ctx.logger.error(f"Error listing responses for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load responses'}), 500

    grouped = {element_type: [] for element_type in element_service.ELEMENT_TYPES}
    for doc in docs:
        item = doc.to_dict() or {}
        item['id'] = doc.id
        grouped.setdefault(item.get('element_type', 'other'), []).append(item)
    for items in grouped.values():
        items.sort(key=lambda item: item.get('created_at', 0) or 0)
    return app_ctx.jsonify({'video_id': video_id, 'is_owner': is_owner, 'responses': grouped})
