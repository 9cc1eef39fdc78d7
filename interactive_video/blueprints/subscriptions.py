from flask import Blueprint, request

from interactive_video.services import subscriptions_api_service

subscriptions_bp = Blueprint('subscriptions_api', __name__)


@subscriptions_bp.route('/api/subscriptions/plans', methods=['GET'])
def get_plans():
    from interactive_video import runtime

    return subscriptions_api_service.get_plans(runtime, request)


@subscriptions_bp.route('/api/subscriptions/current', methods=['GET'])
def get_current_subscription():
    from interactive_video import runtime

    return subscriptions_api_service.get_current_subscription(runtime, request)


@subscriptions_bp.route('/api/subscriptions/checkout', methods=['POST'])
def create_checkout_session():
    from interactive_video import runtime

    return subscriptions_api_service.create_checkout_session(runtime, request)


@subscriptions_bp.route('/api/subscriptions/cancel', methods=['POST'])
def cancel_subscription():
    from interactive_video import runtime

    return subscriptions_api_service.cancel_subscription(runtime, request)


@subscriptions_bp.route('/api/subscriptions/reactivate', methods=['POST'])
def reactivate_subscription():
    from interactive_video import runtime

    return subscriptions_api_service.reactivate_subscription(runtime, request)


@subscriptions_bp.route('/api/subscriptions/update', methods=['POST'])
def update_subscription():
    from interactive_video import runtime

    return subscriptions_api_service.update_subscription(runtime, request)


@subscriptions_bp.route('/api/subscriptions/portal', methods=['POST'])
def create_portal_session():
    from interactive_video import runtime

    return subscriptions_api_service.create_portal_session(runtime, request)


@subscriptions_bp.route('/api/subscriptions/invoices', methods=['GET'])
def list_invoices():
    from interactive_video import runtime

    return subscriptions_api_service.list_invoices(runtime, request)


@subscriptions_bp.route('/api/webhooks/stripe', methods=['POST'])
def stripe_webhook():
    from interactive_video import runtime

    return subscriptions_api_service.stripe_webhook(runtime, request)
