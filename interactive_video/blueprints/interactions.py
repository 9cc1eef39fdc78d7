from flask import Blueprint, request

from interactive_video.services import interactions_api_service

interactions_bp = Blueprint('interactions_api', __name__)


@interactions_bp.route('/api/videos/<video_id>/elements', methods=['GET'])
def list_elements(video_id):
    from interactive_video import runtime

    return interactions_api_service.list_elements(runtime, request, video_id)


@interactions_bp.route('/api/videos/<video_id>/elements', methods=['POST'])
def create_element(video_id):
    from interactive_video import runtime

    return interactions_api_service.create_element(runtime, request, video_id)


@interactions_bp.route('/api/videos/<video_id>/elements/generate', methods=['POST'])
def generate_elements(video_id):
    from interactive_video import runtime

    return interactions_api_service.generate_elements(runtime, request, video_id)


@interactions_bp.route('/api/videos/<video_id>/elements/<element_id>', methods=['PUT'])
def update_element(video_id, element_id):
    from interactive_video import runtime

    return interactions_api_service.update_element(runtime, request, video_id, element_id)


@interactions_bp.route('/api/videos/<video_id>/elements/<element_id>', methods=['DELETE'])
def delete_element(video_id, element_id):
    from interactive_video import runtime

    return interactions_api_service.delete_element(runtime, request, video_id, element_id)


@interactions_bp.route('/api/interactions', methods=['POST'])
def submit_response():
    from interactive_video import runtime

    return interactions_api_service.submit_response(runtime, request)


@interactions_bp.route('/api/interactions/video/<video_id>', methods=['GET'])
def list_responses(video_id):
    from interactive_video import runtime

    return interactions_api_service.list_responses(runtime, request, video_id)
