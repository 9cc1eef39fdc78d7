from flask import Blueprint, request

from interactive_video.services import sharing_api_service

sharing_bp = Blueprint('sharing_api', __name__)


@sharing_bp.route('/api/videos/<video_id>/share', methods=['POST'])
def create_share_link(video_id):
    from interactive_video import runtime

    return sharing_api_service.create_share_link(runtime, request, video_id)


@sharing_bp.route('/api/videos/<video_id>/share', methods=['GET'])
def list_share_links(video_id):
    from interactive_video import runtime

    return sharing_api_service.list_share_links(runtime, request, video_id)


@sharing_bp.route('/api/videos/<video_id>/share/<token>', methods=['DELETE'])
def delete_share_link(video_id, token):
    from interactive_video import runtime

    return sharing_api_service.delete_share_link(runtime, request, video_id, token)


@sharing_bp.route('/api/shared/<token>', methods=['GET'])
def get_shared_video(token):
    from interactive_video import runtime

    return sharing_api_service.get_shared_video(runtime, request, token)


@sharing_bp.route('/api/shared/<token>/interactions', methods=['GET'])
def get_shared_interactions(token):
    from interactive_video import runtime

    return sharing_api_service.get_shared_interactions(runtime, request, token)


@sharing_bp.route('/api/shared/<token>/interactions/<element_id>/results', methods=['POST'])
def submit_shared_result(token, element_id):
    from interactive_video import runtime

    return sharing_api_service.submit_shared_result(runtime, request, token, element_id)
