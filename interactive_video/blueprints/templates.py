from flask import Blueprint, request

from interactive_video.services import templates_api_service

templates_bp = Blueprint('templates_api', __name__)


@templates_bp.route('/api/interaction-templates', methods=['GET'])
def list_templates():
    from interactive_video import runtime

    return templates_api_service.list_templates(runtime, request)


@templates_bp.route('/api/interaction-templates', methods=['POST'])
def create_template():
    from interactive_video import runtime

    return templates_api_service.create_template(runtime, request)


@templates_bp.route('/api/interaction-templates/<template_id>', methods=['GET'])
def get_template(template_id):
    from interactive_video import runtime

    return templates_api_service.get_template(runtime, request, template_id)


@templates_bp.route('/api/interaction-templates/<template_id>', methods=['PATCH'])
def update_template(template_id):
    from interactive_video import runtime

    return templates_api_service.update_template(runtime, request, template_id)


@templates_bp.route('/api/interaction-templates/<template_id>', methods=['DELETE'])
def delete_template(template_id):
    from interactive_video import runtime

    return templates_api_service.delete_template(runtime, request, template_id)
