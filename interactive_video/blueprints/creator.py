from flask import Blueprint, request

from interactive_video.services import earnings_api_service, payouts_api_service

creator_bp = Blueprint('creator_api', __name__)


@creator_bp.route('/api/creator/earnings', methods=['GET'])
def list_earnings():
    from interactive_video import runtime

    return earnings_api_service.list_earnings(runtime, request)


@creator_bp.route('/api/creator/earnings/<period_id>/breakdown', methods=['GET'])
def get_earnings_breakdown(period_id):
    from interactive_video import runtime

    return earnings_api_service.get_breakdown(runtime, request, period_id)


@creator_bp.route('/api/creator/earnings/<period_id>/finalize', methods=['POST'])
def finalize_earnings_period(period_id):
    from interactive_video import runtime

    return earnings_api_service.finalize_period(runtime, request, period_id)


@creator_bp.route('/api/creator/balance', methods=['GET'])
def get_balance():
    from interactive_video import runtime

    return earnings_api_service.get_balance(runtime, request)


@creator_bp.route('/api/creator/payout-accounts', methods=['GET'])
def list_payout_accounts():
    from interactive_video import runtime

    return payouts_api_service.list_accounts(runtime, request)


@creator_bp.route('/api/creator/payout-accounts', methods=['POST'])
def create_payout_account():
    from interactive_video import runtime

    return payouts_api_service.create_account(runtime, request)


@creator_bp.route('/api/creator/payout-accounts/<account_id>', methods=['GET'])
def get_payout_account(account_id):
    from interactive_video import runtime

    return payouts_api_service.get_account(runtime, request, account_id)


@creator_bp.route('/api/creator/payout-accounts/<account_id>', methods=['PATCH'])
def update_payout_account(account_id):
    from interactive_video import runtime

    return payouts_api_service.update_account(runtime, request, account_id)


@creator_bp.route('/api/creator/payout-accounts/<account_id>', methods=['DELETE'])
def delete_payout_account(account_id):
    from interactive_video import runtime

    return payouts_api_service.delete_account(runtime, request, account_id)


@creator_bp.route('/api/creator/payout-settings', methods=['GET'])
def get_payout_settings():
    from interactive_video import runtime

    return payouts_api_service.get_settings(runtime, request)


@creator_bp.route('/api/creator/payout-settings', methods=['PATCH'])
def update_payout_settings():
    from interactive_video import runtime

    return payouts_api_service.update_settings(runtime, request)


@creator_bp.route('/api/creator/payouts', methods=['GET'])
def list_payouts():
    from interactive_video import runtime

    return payouts_api_service.list_payouts(runtime, request)


@creator_bp.route('/api/creator/payouts', methods=['POST'])
def create_payout():
    from interactive_video import runtime

    return payouts_api_service.create_payout(runtime, request)
