"""Business logic handlers for video comments."""

from interactive_video.services.videos_api_service import can_view_video

MAX_COMMENTS_PER_VIDEO = 5000


def list_comments(app_ctx, request):
    video_id = str(request.args.get('video_id', '') or '').strip()
    if not video_id:
        return app_ctx.jsonify({'error': 'video_id is required'}), 400
    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video or not can_view_video(app_ctx, video, app_ctx.verify_firebase_token(request)):
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    try:
        docs = app_ctx.comments_repo.list_for_video(app_ctx.db, video_id, MAX_COMMENTS_PER_VIDEO)
    except Exception as e:
        app_ctx.logger.error(f"Error listing comments for video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load comments'}), 500

    top_level = []
    replies = {}
    for doc in docs:
        comment = doc.to_dict() or {}
        comment['id'] = doc.id
        parent_id = comment.get('parent_id') or ''
        if parent_id:
            replies.setdefault(parent_id, []).append(comment)
        else:
            top_level.append(comment)
    top_level.sort(key=lambda item: item.get('created_at', 0) or 0, reverse=True)
    author_ids = [comment.get('uid', '') for comment in top_level]
    for thread in replies.values():
        author_ids.extend(reply.get('uid', '') for reply in thread)
    authors = app_ctx.users_repo.get_users_by_ids(app_ctx.db, author_ids)

    def with_author(comment):
        author = authors.get(comment.get('uid', ''), {})
        comment['author'] = {'uid': comment.get('uid', ''), 'display_name': author.get('display_name', '')}
        return comment

    comments = []
    for comment in top_level:
        thread = sorted(replies.get(comment['id'], []), key=lambda item: item.get('created_at', 0) or 0)
        comment = with_author(comment)
        comment['replies'] = [with_author(reply) for reply in thread]
        comments.append(comment)
    return app_ctx.jsonify({'comments': comments})


def create_comment(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    data = request.get_json(silent=True) or {}
    content = str(data.get('content', '') or '').strip()
    video_id = str(data.get('video_id', '') or '').strip()
    parent_id = str(data.get('parent_id', '') or '').strip()
    if not content or len(content) > app_ctx.MAX_COMMENT_LENGTH:
        return app_ctx.jsonify({'error': f'Comment must be 1-{app_ctx.MAX_COMMENT_LENGTH} characters'}), 400
    if not video_id:
        return app_ctx.jsonify({'error': 'video_id is required'}), 400

    video = app_ctx.videos_repo.get_video(app_ctx.db, video_id)
    if not video or not can_view_video(app_ctx, video, decoded_token):
        return app_ctx.jsonify({'error': 'Video not found'}), 404
    if parent_id:
        parent = app_ctx.comments_repo.get_comment(app_ctx.db, parent_id)
        if not parent or parent.get('video_id') != video_id:
            return app_ctx.jsonify({'error': 'Parent comment not found on this video'}), 400
        if parent.get('parent_id'):
            return app_ctx.jsonify({'error': 'Replies can only be added to top-level comments'}), 400

    comment = {
        'uid': uid,
        'video_id': video_id,
        'content': content,
        'parent_id': parent_id,
        'created_at': app_ctx.time.time(),
    }
    try:
        comment['id'] = app_ctx.comments_repo.add_comment(app_ctx.db, comment)
    except Exception as e:
        app_ctx.logger.error(f"Error creating comment on video {video_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not save comment'}), 500
    owner_uid = video.get('uid', '')
    if owner_uid and owner_uid != uid:
        app_ctx.notify_user(
            owner_uid,
            'New comment on your video',
            f"{video.get('title', 'Your video')}: {content[:120]}",
            'comment',
            action_url=f'/videos/{video_id}',
            action_text='View comment',
        )
    return app_ctx.jsonify({'comment': comment}), 201
