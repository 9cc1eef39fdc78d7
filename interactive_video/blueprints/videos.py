from flask import Blueprint, request

from interactive_video.services import videos_api_service

videos_bp = Blueprint('videos_api', __name__)


@videos_bp.route('/api/videos', methods=['GET'])
def list_videos():
    from interactive_video import runtime

    return videos_api_service.list_videos(runtime, request)


@videos_bp.route('/api/videos', methods=['POST'])
def create_video():
    from interactive_video import runtime

    return videos_api_service.create_video(runtime, request)


@videos_bp.route('/api/videos/upload', methods=['POST'])
def create_upload():
    from interactive_video import runtime

    return videos_api_service.create_upload(runtime, request)


@videos_bp.route('/api/videos/<video_id>', methods=['GET'])
def get_video(video_id):
    from interactive_video import runtime

    return videos_api_service.get_video(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>', methods=['PUT'])
def update_video(video_id):
    from interactive_video import runtime

    return videos_api_service.update_video(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>', methods=['DELETE'])
def delete_video(video_id):
    from interactive_video import runtime

    return videos_api_service.delete_video(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>/upload-complete', methods=['POST'])
def complete_upload(video_id):
    from interactive_video import runtime

    return videos_api_service.complete_upload(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>/settings', methods=['GET'])
def get_interaction_settings(video_id):
    from interactive_video import runtime

    return videos_api_service.get_interaction_settings(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>/settings', methods=['PUT'])
def update_interaction_settings(video_id):
    from interactive_video import runtime

    return videos_api_service.update_interaction_settings(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>/secure-access', methods=['POST'])
def create_secure_access(video_id):
    from interactive_video import runtime

    return videos_api_service.create_secure_access(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>/verify-token', methods=['POST'])
def verify_access_token(video_id):
    from interactive_video import runtime

    return videos_api_service.verify_access_token(runtime, request, video_id)


@videos_bp.route('/api/videos/<video_id>/analytics', methods=['GET'])
def get_video_analytics(video_id):
    from interactive_video import runtime

    return videos_api_service.get_video_analytics(runtime, request, video_id)
