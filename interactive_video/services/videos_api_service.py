"""Business logic handlers for video APIs."""

from datetime import datetime, timezone

from interactive_video.services import element_service

MAX_TITLE_LEN = 200
MAX_DESCRIPTION_LEN = 5000
MAX_TAGS = 20
MAX_TAG_LEN = 40
MAX_PUBLIC_SCAN = 1000
MAX_ANALYTICS_DOCS = 50000
ANALYTICS_WINDOW_DAYS = 30
UPDATABLE_FIELDS = ('title', 'description', 'thumbnail_url', 'duration', 'tags', 'category', 'visibility', 'source_url')


def _is_http_url(value):
    return str(value or '').startswith(('https://', 'http://'))


def clean_video_fields(raw, partial=False):
    """Return (fields, errors) for the whitelisted video fields."""
    raw = raw if isinstance(raw, dict) else {}
    fields = {}
    errors = {}

    def wants(key):
        return key in raw or not partial

    if wants('title'):
        title = str(raw.get('title', '') or '').strip()[:MAX_TITLE_LEN]
        if not title:
            errors['title'] = 'Title is required'
        fields['title'] = title
    if wants('description'):
        fields['description'] = str(raw.get('description', '') or '').strip()[:MAX_DESCRIPTION_LEN]
    if wants('source_url'):
        source_url = str(raw.get('source_url', '') or '').strip()[:2000]
        if not _is_http_url(source_url):
            errors['source_url'] = 'A valid http(s) video URL is required'
        fields['source_url'] = source_url
        fields['source'] = element_service.infer_video_source(source_url)
    if 'thumbnail_url' in raw:
        thumbnail_url = str(raw.get('thumbnail_url', '') or '').strip()[:2000]
        if thumbnail_url and not _is_http_url(thumbnail_url):
            errors['thumbnail_url'] = 'Thumbnail must be an http(s) URL'
        fields['thumbnail_url'] = thumbnail_url
    if 'duration' in raw:
        duration = raw.get('duration')
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 0:
            errors['duration'] = 'Duration must be a number of seconds >= 0'
        else:
            fields['duration'] = float(duration)
    if 'tags' in raw:
        tags = raw.get('tags')
        if not isinstance(tags, list) or len(tags) > MAX_TAGS:
            errors['tags'] = f'Tags must be a list of at most {MAX_TAGS} strings'
        else:
            cleaned = []
            for tag in tags:
                tag = str(tag or '').strip().lower()[:MAX_TAG_LEN]
                if tag and tag not in cleaned:
                    cleaned.append(tag)
            fields['tags'] = cleaned
    if 'category' in raw:
        fields['category'] = str(raw.get('category', '') or '').strip().lower()[:60]
    if 'visibility' in raw or not partial:
        visibility = str(raw.get('visibility', 'private') or 'private').strip().lower()
        if visibility not in element_service.VIDEO_VISIBILITIES:
            errors['visibility'] = f"Visibility must be one of: {', '.join(element_service.VIDEO_VISIBILITIES)}"
        fields['visibility'] = visibility
    return fields, errors


def serialize_video(video, include_answers=False):
    data = dict(video)
    data.pop('upload_key', None)
    data['interactive_elements'] = [
        element_service.public_element(element, include_answers=include_answers)
        for element in element_service.sort_elements(video.get('interactive_elements', []) or [])
    ]
    settings = dict(element_service.DEFAULT_INTERACTION_SETTINGS)
    settings.update(video.get('interaction_settings') or {})
    data['interaction_settings'] = settings
    return data


def viewer_uid(decoded_token):
    return decoded_token.get('uid', '') if decoded_token else ''


def can_view_video(app_ctx, video, decoded_token):
    if video.get('visibility') in ('public', 'unlisted'):
        return True
    uid = viewer_uid(decoded_token)
    return bool(uid) and (uid == video.get('uid') or app_ctx.is_admin_user(decoded_token))


def load_owned_video(app_ctx, request, video_id):
    """Return (decoded_token, video, error_response). Owners only."""
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video:
        return decoded_token, None, (app_ctx.jsonify({'error': 'Video not found'}), 404)
    if video.get('uid') != decoded_token['uid']:
        return decoded_token, None, (app_ctx.jsonify({'error': 'Forbidden'}), 403)
    return decoded_token, video, None


def duration_conflict(app_ctx, video, duration):
    offending = element_service.elements_past_duration(video.get('interactive_elements'), duration)
    if not offending:
        return None
    return app_ctx.jsonify({
        'error': 'Duration is shorter than existing interactive elements',
        'details': {'duration': 'Move or delete these elements first', 'element_ids': offending},
    }), 400


def list_videos(app_ctx, request):
    page, limit = app_ctx.parse_pagination(request)
    category = str(request.args.get('category', '') or '').strip().lower()
    tag = str(request.args.get('tag', '') or '').strip().lower()
    creator = str(request.args.get('creator', '') or '').strip()
    search = str(request.args.get('search', '') or '').strip().lower()
    try:
        docs = app_ctx.videos_repo.list_public(
            app_ctx.db, MAX_PUBLIC_SCAN, app_ctx.firestore, category=category, tag=tag, creator=creator,
        )
        videos = []
        for doc in docs:
            video = doc.to_dict() or {}
            video['id'] = doc.id
            if search:
                haystack = f"{video.get('title', '')} {video.get('description', '')}".lower()
                if search not in haystack:
                    continue
            videos.append(serialize_video(video))
        items, pagination = app_ctx.paginate(videos, page, limit)
        return app_ctx.jsonify({'videos': items, 'pagination': pagination})
    except Exception as e:
        app_ctx.logger.error(f"Error listing videos: {e}")
        return app_ctx.jsonify({'error': 'Could not load videos'}), 500


def create_video(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    fields, errors = clean_video_fields(request.get_json(silent=True) or {})
    if errors:
        return app_ctx.jsonify({'error': 'Invalid video data', 'details': errors}), 400

    now_ts = app_ctx.time.time()
    video = {
        'uid': uid,
        'description': '',
        'thumbnail_url': '',
        'duration': 0,
        'tags': [],
        'category': '',
        'status': 'ready',
        'views': 0,
        'interactive_elements': [],
        'interaction_settings': dict(element_service.DEFAULT_INTERACTION_SETTINGS),
        'created_at': now_ts,
        'updated_at': now_ts,
    }
    video.update(fields)
    try:
        video['id'] = app_ctx.videos_repo.create_video(app_ctx.db, video)
    except Exception as e:
        app_ctx.logger.error(f"Error creating video for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not create video'}), 500
    app_ctx.log_event(app_ctx.logging.INFO, 'video_created', uid=uid, video_id=video['id'], source=video['source'])
    return app_ctx.jsonify({'video': serialize_video(video, include_answers=True)}), 201


def record_view(app_ctx, request, video, video_id, uid):
    try:
        app_ctx.engagement_repo.add_view(app_ctx.db, {
            'video_id': video_id,
            'creator_id': video.get('uid', ''),
            'uid': uid,
            'ip': app_ctx.hash_key(app_ctx.get_client_ip(request)),
            'watch_time': 0,
            'completed': False,
            'created_at': app_ctx.time.time(),
        })
        app_ctx.videos_repo.increment_views(app_ctx.db, video_id, app_ctx.firestore)
        video['views'] = int(video.get('views', 0) or 0) + 1
    except Exception as e:
        app_ctx.logger.error(f"Error recording view for video {video_id}: {e}")


def get_video(app_ctx, request, video_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    try:
        video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    except Exception as e:
        app_ctx.logger.error(f"Error loading video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load video'}), 500
    if not video:
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    if not can_view_video(app_ctx, video, decoded_token):
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401

    uid = viewer_uid(decoded_token)
    is_owner = bool(uid) and uid == video.get('uid')
    # Owner views are not counted.
    if not is_owner:
        record_view(app_ctx, request, video, video_id, uid)

    creator = app_ctx.users_repo.get_users_by_ids(app_ctx.db, [video.get('uid', '')]).get(video.get('uid', ''), {})
    payload = serialize_video(video, include_answers=is_owner)
    payload['creator'] = {'uid': video.get('uid', ''), 'display_name': creator.get('display_name', '')}
    payload['is_owner'] = is_owner
    return app_ctx.jsonify({'video': payload})


def update_video(app_ctx, request, video_id):
    decoded_token, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    raw = request.get_json(silent=True) or {}
    fields, errors = clean_video_fields({key: raw[key] for key in UPDATABLE_FIELDS if key in raw}, partial=True)
    if errors:
        return app_ctx.jsonify({'error': 'Invalid video data', 'details': errors}), 400
    if not fields:
        return app_ctx.jsonify({'error': 'No updatable fields provided'}), 400
    if 'duration' in fields:
        error = duration_conflict(app_ctx, video, fields['duration'])
        if error:
            return error
    fields['updated_at'] = app_ctx.time.time()
    try:
        app_ctx.videos_repo.update_doc(app_ctx.db, video_id, fields)
    except Exception as e:
        app_ctx.logger.error(f"Error updating video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not update video'}), 500
    video.update(fields)
    return app_ctx.jsonify({'video': serialize_video(video, include_answers=True)})


def delete_video(app_ctx, request, video_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video:
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    if video.get('uid') != decoded_token['uid'] and not app_ctx.is_admin_user(decoded_token):
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    try:
        for doc in app_ctx.share_links_repo.list_for_video(app_ctx.db, video_id, app_ctx.ACCOUNT_DELETE_MAX_DOCS_PER_COLLECTION):
            doc.reference.delete()
        app_ctx.videos_repo.delete_doc(app_ctx.db, video_id)
    except Exception as e:
        app_ctx.logger.error(f"Error deleting video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete video'}), 500
    app_ctx.log_event(app_ctx.logging.INFO, 'video_deleted', uid=decoded_token['uid'], video_id=video_id)
    return app_ctx.jsonify({'ok': True})


def create_upload(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    allowed, retry_after = app_ctx.check_rate_limit(
        key=f"upload:{app_ctx.normalize_rate_limit_key_part(uid, fallback='anon_uid')}",
        limit=app_ctx.UPLOAD_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=app_ctx.UPLOAD_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('upload', retry_after)
        return app_ctx.build_rate_limited_response('Too many uploads started. Please wait before uploading again.', retry_after)
    if not app_ctx.AWS_S3_BUCKET:
        return app_ctx.jsonify({'error': 'Video uploads are not configured'}), 503

    data = request.get_json(silent=True) or {}
    file_name = str(data.get('file_name', '') or '').strip()[:255]
    file_type = str(data.get('file_type', '') or '').strip().lower()
    file_size = data.get('file_size')
    if not file_name:
        return app_ctx.jsonify({'error': 'file_name is required'}), 400
    if file_type not in app_ctx.ALLOWED_VIDEO_MIME_TYPES:
        return app_ctx.jsonify({'error': 'Only video files can be uploaded'}), 400
    if isinstance(file_size, bool) or not isinstance(file_size, int) or file_size <= 0:
        return app_ctx.jsonify({'error': 'file_size must be a positive integer'}), 400
    if file_size > app_ctx.MAX_VIDEO_UPLOAD_BYTES:
        return app_ctx.jsonify({'error': 'File is too large'}), 400

    meta_raw = {
        'title': data.get('title') or file_name.rsplit('.', 1)[0] or 'Untitled video',
        'visibility': 'public' if data.get('is_public') else 'private',
    }
    for key in ('description', 'tags', 'category'):
        if key in data:
            meta_raw[key] = data[key]
    fields, errors = clean_video_fields(meta_raw, partial=True)
    if errors:
        return app_ctx.jsonify({'error': 'Invalid video data', 'details': errors}), 400

    key = app_ctx.storage_service.build_upload_key(uid, file_name, file_type)
    try:
        upload_url = app_ctx.storage_service.generate_presigned_upload_url(
            app_ctx.get_s3_client(),
            app_ctx.AWS_S3_BUCKET,
            key,
            file_type,
            expires=app_ctx.S3_PRESIGNED_URL_TTL_SECONDS,
        )
    except Exception as e:
        app_ctx.logger.error(f"Error creating presigned upload URL for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not prepare upload'}), 500

    now_ts = app_ctx.time.time()
    video = {
        'uid': uid,
        'description': '',
        'thumbnail_url': '',
        'duration': 0,
        'tags': [],
        'category': '',
        'source': 'local',
        'source_url': app_ctx.storage_service.build_object_url(app_ctx.AWS_S3_BUCKET, app_ctx.AWS_REGION, key),
        'status': 'processing',
        'upload_key': key,
        'file_size': file_size,
        'file_type': file_type,
        'views': 0,
        'interactive_elements': [],
        'interaction_settings': dict(element_service.DEFAULT_INTERACTION_SETTINGS),
        'created_at': now_ts,
        'updated_at': now_ts,
    }
    video.update(fields)
    try:
        video_id = app_ctx.videos_repo.create_video(app_ctx.db, video)
    except Exception as e:
        app_ctx.logger.error(f"Error creating upload record for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not prepare upload'}), 500
    return app_ctx.jsonify({
        'video_id': video_id,
        'upload_url': upload_url,
        'key': key,
        'expires_in': app_ctx.S3_PRESIGNED_URL_TTL_SECONDS,
    }), 201


def complete_upload(app_ctx, request, video_id):
    _, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    if video.get('status') == 'ready':
        return app_ctx.jsonify({'ok': True, 'status': 'ready'})
    if not video.get('upload_key'):
        return app_ctx.jsonify({'error': 'Video was not uploaded to storage'}), 400
    updates = {'status': 'ready', 'updated_at': app_ctx.time.time()}
    data = request.get_json(silent=True) or {}
    duration = data.get('duration')
    if isinstance(duration, (int, float)) and not isinstance(duration, bool) and duration >= 0:
        updates['duration'] = float(duration)
        error = duration_conflict(app_ctx, video, updates['duration'])
        if error:
            return error
    try:
        app_ctx.videos_repo.update_doc(app_ctx.db, video_id, updates)
    except Exception as e:
        app_ctx.logger.error(f"Error completing upload for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not complete upload'}), 500
    return app_ctx.jsonify({'ok': True, 'status': 'ready'})


def get_interaction_settings(app_ctx, request, video_id):
    _, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    settings, _ = element_service.validate_interaction_settings({}, video.get('interaction_settings'))
    return app_ctx.jsonify({'settings': settings})


def update_interaction_settings(app_ctx, request, video_id):
    _, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    settings, errors = element_service.validate_interaction_settings(
        request.get_json(silent=True), video.get('interaction_settings'),
    )
    if errors:
        return app_ctx.jsonify({'error': 'Invalid settings', 'details': errors}), 400
    try:
        app_ctx.videos_repo.update_doc(app_ctx.db, video_id, {
            'interaction_settings': settings,
            'updated_at': app_ctx.time.time(),
        })
    except Exception as e:
        app_ctx.logger.error(f"Error saving interaction settings for {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not save settings'}), 500
    return app_ctx.jsonify({'settings': settings})


def create_secure_access(app_ctx, request, video_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video:
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    if not can_view_video(app_ctx, video, decoded_token) and not app_ctx.is_premium_user(uid):
        return app_ctx.jsonify({'error': 'You do not have access to this video'}), 403

    now_ts = app_ctx.time.time()
    token, expires_at = app_ctx.video_token_service.generate_secure_token(
        video_id, uid, app_ctx.VIDEO_TOKEN_SECRET, now_ts, app_ctx.VIDEO_ACCESS_TOKEN_TTL_SECONDS,
    )
    try:
        app_ctx.engagement_repo.add_video_access(app_ctx.db, {
            'video_id': video_id,
            'creator_id': video.get('uid', ''),
            'uid': uid,
            'ip': app_ctx.hash_key(app_ctx.get_client_ip(request)),
            'expires_at': expires_at,
            'created_at': now_ts,
        })
    except Exception as e:
        app_ctx.logger.error(f"Error logging video access for {video_id}: {e}")
    return app_ctx.jsonify({'token': token, 'expires_at': expires_at})


def verify_access_token(app_ctx, request, video_id):
    data = request.get_json(silent=True) or {}
    token = str(data.get('token', '') or '').strip()
    if not token:
        return app_ctx.jsonify({'error': 'Token is required'}), 400
    payload = app_ctx.video_token_service.verify_secure_token(token, app_ctx.VIDEO_TOKEN_SECRET)
    if not payload or payload.get('video_id') != video_id:
        return app_ctx.jsonify({'valid': False, 'error': 'Invalid or expired token'}), 403
    return app_ctx.jsonify({'valid': True, 'expires_at': payload.get('expires_at')})


def build_video_analytics(video, views, engagements, now_ts):
    total_views = max(int(video.get('views', 0) or 0), len(views))
    viewers = {view.get('uid') or view.get('ip') for view in views if view.get('uid') or view.get('ip')}
    watch_times = [float(view.get('watch_time', 0) or 0) for view in views if view.get('watch_time')]
    completed = sum(1 for view in views if view.get('completed'))

    interactions_by_type = {element_type: 0 for element_type in element_service.ELEMENT_TYPES}
    for engagement in engagements:
        element_type = engagement.get('element_type', '')
        if element_type in interactions_by_type:
            interactions_by_type[element_type] += 1

    views_by_day = {}
    for offset in range(ANALYTICS_WINDOW_DAYS - 1, -1, -1):
        day = datetime.fromtimestamp(now_ts - offset * 86400, tz=timezone.utc).strftime('%Y-%m-%d')
        views_by_day[day] = 0
    for view in views:
        created_at = view.get('created_at')
        if not isinstance(created_at, (int, float)):
            continue
        day = datetime.fromtimestamp(created_at, tz=timezone.utc).strftime('%Y-%m-%d')
        if day in views_by_day:
            views_by_day[day] += 1

    return {
        'video_id': video['id'],
        'total_views': total_views,
        'unique_viewers': len(viewers),
        'average_watch_time': round(sum(watch_times) / len(watch_times), 1) if watch_times else 0,
        'completion_rate': round(completed / len(views) * 100, 1) if views else 0,
        'interaction_count': len(engagements),
        'interactions_by_type': interactions_by_type,
        'engagement_rate': round(len(engagements) / total_views * 100, 1) if total_views else 0,
        'views_by_day': [{'date': day, 'views': count} for day, count in views_by_day.items()],
    }


def get_video_analytics(app_ctx, request, video_id):
    _, video, error = load_owned_video(app_ctx, request, video_id)
    if error:
        return error
    now_ts = app_ctx.time.time()
    try:
        since_ts = now_ts - ANALYTICS_WINDOW_DAYS * 86400
        views = [doc.to_dict() or {} for doc in app_ctx.engagement_repo.list_views_for_video(
            app_ctx.db, video_id, since_ts, MAX_ANALYTICS_DOCS)]
        engagements = [doc.to_dict() or {} for doc in app_ctx.engagement_repo.list_engagements_for_video(
            app_ctx.db, video_id, MAX_ANALYTICS_DOCS)]
        return app_ctx.jsonify({'analytics': build_video_analytics(video, views, engagements, now_ts)})
    except Exception as e:
        app_ctx.logger.error(f"Error building analytics for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load analytics'}), 500
