from flask import Blueprint, request

from interactive_video.services import auth_api_service

auth_bp = Blueprint('auth_api', __name__)


@auth_bp.route('/api/auth/user', methods=['GET'])
def get_user():
    from interactive_video import runtime

    return auth_api_service.get_user(runtime, request)


@auth_bp.route('/api/analytics/event', methods=['POST'])
def ingest_analytics_event():
    from interactive_video import runtime

    return auth_api_service.ingest_analytics_event(runtime, request)
