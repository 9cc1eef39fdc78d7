from flask import Blueprint, request

from interactive_video.services import affiliate_api_service

affiliate_bp = Blueprint('affiliate_api', __name__)


@affiliate_bp.route('/api/affiliate/program', methods=['GET'])
def get_program():
    from interactive_video import runtime

    return affiliate_api_service.get_program(runtime, request)


@affiliate_bp.route('/api/affiliate/track', methods=['GET'])
def track_referral():
    from interactive_video import runtime

    return affiliate_api_service.track_referral(runtime, request)


@affiliate_bp.route('/api/affiliate/join', methods=['POST'])
def join_program():
    from interactive_video import runtime

    return affiliate_api_service.join_program(runtime, request)


@affiliate_bp.route('/api/affiliate/dashboard', methods=['GET'])
def get_dashboard():
    from interactive_video import runtime

    return affiliate_api_service.get_dashboard(runtime, request)


@affiliate_bp.route('/api/affiliate/referrals', methods=['GET'])
def list_referrals():
    from interactive_video import runtime

    return affiliate_api_service.list_referrals(runtime, request)


@affiliate_bp.route('/api/affiliate/commissions', methods=['GET'])
def list_commissions():
    from interactive_video import runtime

    return affiliate_api_service.list_commissions(runtime, request)


@affiliate_bp.route('/api/affiliate/payouts', methods=['GET'])
def list_payouts():
    from interactive_video import runtime

    return affiliate_api_service.list_payouts(runtime, request)


@affiliate_bp.route('/api/affiliate/payouts', methods=['POST'])
def request_payout():
    from interactive_video import runtime

    return affiliate_api_service.request_payout(runtime, request)


@affiliate_bp.route('/api/affiliate/settings', methods=['GET'])
def get_settings():
    from interactive_video import runtime

    return affiliate_api_service.get_settings(runtime, request)


@affiliate_bp.route('/api/affiliate/settings', methods=['PATCH'])
def update_settings():
    from interactive_video import runtime

    return affiliate_api_service.update_settings(runtime, request)
