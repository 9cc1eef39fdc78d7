from flask import Blueprint, request

from interactive_video.services import notifications_api_service

notifications_bp = Blueprint('notifications_api', __name__)


@notifications_bp.route('/api/notifications', methods=['GET'])
def list_notifications():
    from interactive_video import runtime

    return notifications_api_service.list_notifications(runtime, request)


@notifications_bp.route('/api/notifications/read-all', methods=['POST'])
def mark_all_read():
    from interactive_video import runtime

    return notifications_api_service.mark_all_read(runtime, request)


@notifications_bp.route('/api/notifications/clear-all', methods=['DELETE'])
def clear_all():
    from interactive_video import runtime

    return notifications_api_service.clear_all(runtime, request)
