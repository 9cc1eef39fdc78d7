from flask import Blueprint, request

from interactive_video.services import admin_api_service

admin_bp = Blueprint('admin_api', __name__)


@admin_bp.route('/api/admin/overview', methods=['GET'])
def admin_overview():
    from interactive_video import runtime

    return admin_api_service.admin_overview(runtime, request)


@admin_bp.route('/api/admin/earnings/schedule', methods=['POST'])
def run_earnings_schedule():
    from interactive_video import runtime

    return admin_api_service.run_earnings_schedule(runtime, request)


@admin_bp.route('/api/admin/payouts/run', methods=['POST'])
def run_scheduled_payouts():
    from interactive_video import runtime

    return admin_api_service.run_scheduled_payouts(runtime, request)


@admin_bp.route('/api/admin/affiliate/commissions/<commission_id>/approve', methods=['POST'])
def approve_affiliate_commission(commission_id):
    from interactive_video import runtime

    return admin_api_service.approve_affiliate_commission(runtime, request, commission_id)


@admin_bp.route('/api/admin/affiliate/payouts/<request_id>/process', methods=['POST'])
def process_affiliate_payout(request_id):
    from interactive_video import runtime

    return admin_api_service.process_affiliate_payout(runtime, request, request_id)


@admin_bp.route('/api/admin/affiliate/payouts/<request_id>/reject', methods=['POST'])
def reject_affiliate_payout(request_id):
    from interactive_video import runtime

    return admin_api_service.reject_affiliate_payout(runtime, request, request_id)
