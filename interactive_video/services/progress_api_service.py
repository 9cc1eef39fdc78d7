"""Business logic handlers for viewer progress APIs."""

from interactive_video.services.videos_api_service import can_view_video


def get_progress(app_ctx, request, video_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video or not can_view_video(app_ctx, video, decoded_token):
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    try:
        progress = app_ctx.engagement_repo.get_progress(app_ctx.db, decoded_token['uid'], video_id) or {}
    except Exception as e:
        app_ctx.logger.error(f"Error loading progress for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load progress'}), 500
    return app_ctx.jsonify({
        'video_id': video_id,
        'last_position': progress.get('last_position', 0),
        'completed_interactions': progress.get('completed_interactions', []),
        'updated_at': progress.get('updated_at', 0),
    })


def save_progress(app_ctx, request, video_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    data = request.get_json(silent=True) or {}

    last_position = data.get('last_position', 0)
    if isinstance(last_position, bool) or not isinstance(last_position, (int, float)) or last_position < 0:
        return app_ctx.jsonify({'error': 'last_position must be a number >= 0'}), 400
    raw_completed = data.get('completed_interactions', [])
    if not isinstance(raw_completed, list):
        return app_ctx.jsonify({'error': 'completed_interactions must be a list of element ids'}), 400
    completed_interactions = []
    for item in raw_completed:
        element_id = str(item or '').strip()[:64]
        if element_id and element_id not in completed_interactions:
            completed_interactions.append(element_id)
    completed_interactions = completed_interactions[:app_ctx.MAX_COMPLETED_INTERACTIONS]

    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video or not can_view_video(app_ctx, video, decoded_token):
        return app_ctx.jsonify({'error': 'Video not found'}), 404

    now_ts = app_ctx.time.time()
    progress = {
        'uid': uid,
        'video_id': video_id,
        'last_position': float(last_position),
        'completed_interactions': completed_interactions,
        'updated_at': now_ts,
    }
    try:
        app_ctx.engagement_repo.set_progress(app_ctx.db, uid, video_id, progress)
        watch_time = data.get('watch_time')
        if data.get('completed') is True or isinstance(watch_time, (int, float)) and not isinstance(watch_time, bool):
            view_doc = app_ctx.engagement_repo.latest_view_for_viewer(app_ctx.db, video_id, uid, app_ctx.firestore)
            if view_doc is not None:
                updates = {}
                if data.get('completed') is True:
                    updates['completed'] = True
                if isinstance(watch_time, (int, float)) and not isinstance(watch_time, bool) and watch_time >= 0:
                    updates['watch_time'] = float(watch_time)
                if updates:
                    app_ctx.engagement_repo.update_view(app_ctx.db, view_doc.id, updates)
    except Exception as e:
        app_ctx.logger.error(f"Error saving progress for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not save progress'}), 500
    return app_ctx.jsonify({'ok': True, 'progress': progress})
