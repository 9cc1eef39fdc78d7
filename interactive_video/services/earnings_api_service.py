"""Business logic handlers for creator earnings APIs."""

MAX_PERIODS = 500


def _load_own_period(app_ctx, request, period_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    period = app_ctx.earnings_repo.get_period(app_ctx.db, period_id)
    if not period or period.get('uid') != decoded_token['uid']:
        return decoded_token, None, (app_ctx.jsonify({'error': 'Earnings period not found'}), 404)
    return decoded_token, period, None


def list_earnings(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    page, limit = app_ctx.parse_pagination(request)
    status = str(request.args.get('status', '') or '').strip().lower()
    if status and status not in ('pending', 'finalized'):
        return app_ctx.jsonify({'error': 'Invalid status filter'}), 400
    try:
        periods = []
        for doc in app_ctx.earnings_repo.list_for_uid(app_ctx.db, uid, MAX_PERIODS, status=status):
            period = doc.to_dict() or {}
            period['id'] = doc.id
            periods.append(period)
        periods.sort(key=lambda item: (item.get('end_date', 0) or 0, item.get('created_at', 0) or 0), reverse=True)
        items, pagination = app_ctx.paginate(periods, page, limit)
        current = app_ctx.earnings_service.calculate_current_earnings(
            app_ctx.db, uid, app_ctx.time.time(), app_ctx.get_earnings_rates(),
        )
    except Exception as e:
        app_ctx.logger.error(f"Error loading earnings for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load earnings'}), 500
    return app_ctx.jsonify({'earnings': items, 'pagination': pagination, 'current_earnings': current})


def get_breakdown(app_ctx, request, period_id):
    _, period, error = _load_own_period(app_ctx, request, period_id)
    if error:
        return error
    try:
        breakdown = app_ctx.earnings_service.get_earnings_breakdown(app_ctx.db, period, app_ctx.get_earnings_rates())
    except Exception as e:
        app_ctx.logger.error(f"Error building earnings breakdown for {period_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not load earnings breakdown'}), 500
    return app_ctx.jsonify({'period': period, 'breakdown': breakdown})


def finalize_period(app_ctx, request, period_id):
    _, period, error = _load_own_period(app_ctx, request, period_id)
    if error:
        return error
    if period.get('status') != 'pending':
        return app_ctx.jsonify({'error': 'Only pending earnings periods can be finalized'}), 400
    try:
        finalized = app_ctx.finalize_earnings_period(period_id)
    except Exception as e:
        app_ctx.logger.error(f"Error finalizing earnings period {period_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not finalize earnings period'}), 500
    if not finalized:
        return app_ctx.jsonify({'error': 'Only pending earnings periods can be finalized'}), 400
    return app_ctx.jsonify({'ok': True, 'period': app_ctx.earnings_repo.get_period(app_ctx.db, period_id)})


def get_balance(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        balance = app_ctx.earnings_service.get_available_balance(app_ctx.db, uid)
    except Exception as e:
        app_ctx.logger.error(f"Error computing balance for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load balance'}), 500
    return app_ctx.jsonify({
        'available_balance': balance,
        'currency': 'usd',
        'minimum_manual_payout': app_ctx.MIN_MANUAL_PAYOUT,
    })
