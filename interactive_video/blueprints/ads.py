from flask import Blueprint, request

from interactive_video.services import ads_api_service

ads_bp = Blueprint('ads_api', __name__)


@ads_bp.route('/api/ads/serve', methods=['GET'])
def serve_ads():
    from interactive_video import runtime

    return ads_api_service.serve_ads(runtime, request)


@ads_bp.route('/api/ads/click', methods=['POST'])
def record_click():
    from interactive_video import runtime

    return ads_api_service.record_click(runtime, request)


@ads_bp.route('/api/ads', methods=['POST'])
def create_ad():
    from interactive_video import runtime

    return ads_api_service.create_ad(runtime, request)


@ads_bp.route('/api/ads/<ad_id>', methods=['PATCH'])
def update_ad(ad_id):
    from interactive_video import runtime

    return ads_api_service.update_ad(runtime, request, ad_id)


@ads_bp.route('/api/ads/<ad_id>/performance', methods=['GET'])
def get_performance(ad_id):
    from interactive_video import runtime

    return ads_api_service.get_performance(runtime, request, ad_id)
