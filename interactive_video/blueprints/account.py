from flask import Blueprint, request

from interactive_video.services import auth_api_service

account_bp = Blueprint('account_api', __name__)


@account_bp.route('/api/account/export', methods=['GET'])
def export_account_data():
    from interactive_video import runtime

    return auth_api_service.export_account_data(runtime, request)


@account_bp.route('/api/account/delete', methods=['POST'])
def delete_account_data():
    from interactive_video import runtime

    return auth_api_service.delete_account_data(runtime, request)
