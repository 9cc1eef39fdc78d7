from flask import Blueprint, request

from interactive_video.services import comments_api_service, progress_api_service

engagement_bp = Blueprint('engagement_api', __name__)


@engagement_bp.route('/api/progress/<video_id>', methods=['GET'])
def get_progress(video_id):
    from interactive_video import runtime

    return progress_api_service.get_progress(runtime, request, video_id)


@engagement_bp.route('/api/progress/<video_id>', methods=['POST'])
def save_progress(video_id):
    from interactive_video import runtime

    return progress_api_service.save_progress(runtime, request, video_id)


@engagement_bp.route('/api/comments', methods=['GET'])
def list_comments():
    from interactive_video import runtime

    return comments_api_service.list_comments(runtime, request)


@engagement_bp.route('/api/comments', methods=['POST'])
def create_comment():
    from interactive_video import runtime

    return comments_api_service.create_comment(runtime, request)
