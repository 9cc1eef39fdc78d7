from flask import Blueprint, jsonify

core_bp = Blueprint('core_api', __name__)


@core_bp.route('/healthz', methods=['GET'])
def healthz():
    return jsonify({'status': 'ok'})
