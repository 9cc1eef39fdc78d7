from flask import Blueprint, request

from interactive_video.services import catalog_api_service

catalog_bp = Blueprint('catalog_api', __name__)


@catalog_bp.route('/api/categories', methods=['GET'])
def list_categories():
    from interactive_video import runtime

    return catalog_api_service.list_categories(runtime, request)


@catalog_bp.route('/api/categories/<slug>/tags', methods=['GET'])
def list_category_tags(slug):
    from interactive_video import runtime

    return catalog_api_service.list_category_tags(runtime, request, slug)


@catalog_bp.route('/api/tags/popular', methods=['GET'])
def list_popular_tags():
    from interactive_video import runtime

    return catalog_api_service.list_popular_tags(runtime, request)
