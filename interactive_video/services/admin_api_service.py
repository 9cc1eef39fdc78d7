"""Business logic handlers for admin APIs."""

RECENT_LIMIT = 20


def _require_admin(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    if not app_ctx.is_admin_user(decoded_token):
        return decoded_token, (app_ctx.jsonify({'error': 'Forbidden'}), 403)
    return decoded_token, None


def _is_dry_run(request):
    data = request.get_json(silent=True) or {}
    return bool(data.get('dry_run')) or str(request.args.get('dry_run', '') or '').strip().lower() in {'1', 'true', 'yes'}


def admin_overview(app_ctx, request):
    _, error = _require_admin(app_ctx, request)
    if error:
        return error

    try:
        window_key, window_seconds = app_ctx.get_admin_window(request.args.get('window', '7d'))
        now_ts = app_ctx.time.time()
        window_start = now_ts - window_seconds

        total_users = app_ctx.safe_count_collection('users')
        total_videos = app_ctx.safe_count_collection('videos')
        total_share_links = app_ctx.safe_count_collection('share_links')
        active_subscriptions = app_ctx.subscriptions_repo.count_active(app_ctx.db, 10000) if app_ctx.db else 0

        new_users = len(app_ctx.safe_query_docs_in_window('users', 'created_at', window_start, now_ts))
        new_videos = len(app_ctx.safe_query_docs_in_window('videos', 'created_at', window_start, now_ts))
        payout_docs = app_ctx.safe_query_docs_in_window(
            collection_name='payout_transactions',
            timestamp_field='created_at',
            window_start=window_start,
            window_end=now_ts,
        )
        filtered_rate_limit_docs = app_ctx.safe_query_docs_in_window(
            collection_name='rate_limit_logs',
            timestamp_field='created_at',
            window_start=window_start,
            window_end=now_ts,
        )

        payout_counts = {'pending': 0, 'processing': 0, 'completed': 0, 'failed': 0, 'cancelled': 0}
        pending_payout_volume = 0.0
        completed_payout_volume = 0.0
        payouts = []
        for doc in payout_docs:
            payout = doc.to_dict() or {}
            payouts.append(payout)
            status = payout.get('status', '')
            if status in payout_counts:
                payout_counts[status] += 1
            amount = float(payout.get('amount', 0) or 0)
            if status in ('pending', 'processing'):
                pending_payout_volume += amount
            elif status == 'completed':
                completed_payout_volume += amount

        rate_limit_counts = {}
        for doc in filtered_rate_limit_docs:
            entry = doc.to_dict() or {}
            limit_name = str(entry.get('limit_name', '') or '').strip().lower()
            if limit_name:
                rate_limit_counts[limit_name] = rate_limit_counts.get(limit_name, 0) + 1

        recent_payouts = []
        for payout in sorted(payouts, key=lambda p: app_ctx.get_timestamp(p.get('created_at')), reverse=True)[:RECENT_LIMIT]:
            recent_payouts.append({
                'uid': payout.get('uid', ''),
                'amount': payout.get('amount', 0),
                'currency': payout.get('currency', 'usd'),
                'status': payout.get('status', ''),
                'reference': payout.get('reference', ''),
                'payout_account_type': payout.get('payout_account_type', ''),
                'created_at': payout.get('created_at', 0),
            })

        return app_ctx.jsonify({
            'window': {
                'key': window_key,
                'start': window_start,
                'end': now_ts,
            },
            'metrics': {
                'total_users': total_users,
                'new_users': new_users,
                'total_videos': total_videos,
                'new_videos': new_videos,
                'total_share_links': total_share_links,
                'active_subscriptions': active_subscriptions,
                'payout_count': len(payouts),
                'payout_status_counts': payout_counts,
                'pending_payout_volume': app_ctx.round_money(pending_payout_volume),
                'completed_payout_volume': app_ctx.round_money(completed_payout_volume),
                'rate_limit_429_counts': rate_limit_counts,
                'rate_limit_429_total': sum(rate_limit_counts.values()),
            },
            'recent_payouts': recent_payouts,
            'runtime_checks': app_ctx.build_admin_runtime_checks(),
        })
    except Exception as e:
        app_ctx.logger.error(f"Error fetching admin overview: {e}")
        return app_ctx.jsonify({'error': 'Could not fetch admin dashboard data'}), 500


def run_earnings_schedule(app_ctx, request):
    _, error = _require_admin(app_ctx, request)
    if error:
        return error
    dry_run = _is_dry_run(request)
    try:
        created = app_ctx.schedule_earnings_periods(dry_run=dry_run)
    except Exception as e:
        app_ctx.logger.error(f"Earnings schedule run failed: {e}")
        return app_ctx.jsonify({'error': 'Could not schedule earnings periods'}), 500
    app_ctx.log_event(app_ctx.logging.INFO, 'earnings_schedule_run', created=len(created), dry_run=dry_run)
    return app_ctx.jsonify({'ok': True, 'dry_run': dry_run, 'created': created})


def run_scheduled_payouts(app_ctx, request):
    _, error = _require_admin(app_ctx, request)
    if error:
        return error
    dry_run = _is_dry_run(request)
    try:
        triggered, failed = app_ctx.run_scheduled_payouts(dry_run=dry_run)
    except Exception as e:
        app_ctx.logger.error(f"Scheduled payout run failed: {e}")
        return app_ctx.jsonify({'error': 'Could not run scheduled payouts'}), 500
    app_ctx.log_event(app_ctx.logging.INFO, 'scheduled_payouts_run', triggered=len(triggered), failed=len(failed), dry_run=dry_run)
    return app_ctx.jsonify({'ok': True, 'dry_run': dry_run, 'triggered': triggered, 'failed': failed})


def approve_affiliate_commission(app_ctx, request, commission_id):
    _, error = _require_admin(app_ctx, request)
    if error:
        return error
    try:
        commission = app_ctx.affiliate_service.approve_commission(
            app_ctx.db, commission_id, firestore_module=app_ctx.firestore, now_ts=app_ctx.time.time(),
        )
    except app_ctx.affiliate_service.AffiliateError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error approving commission {commission_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not approve commission'}), 500
    return app_ctx.jsonify({'commission': commission})


def process_affiliate_payout(app_ctx, request, request_id):
    _, error = _require_admin(app_ctx, request)
    if error:
        return error
    try:
        payout = app_ctx.affiliate_service.process_payout_request(
            app_ctx.db, request_id, firestore_module=app_ctx.firestore, now_ts=app_ctx.time.time(),
        )
    except app_ctx.affiliate_service.AffiliateError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error processing affiliate payout {request_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not process payout request'}), 500
    app_ctx.notify_affiliate_payout(payout)
    return app_ctx.jsonify({'payout': payout})


def reject_affiliate_payout(app_ctx, request, request_id):
    _, error = _require_admin(app_ctx, request)
    if error:
        return error
    reason = (request.get_json(silent=True) or {}).get('reason', '')
    try:
        payout = app_ctx.affiliate_service.reject_payout_request(app_ctx.db, request_id, reason, now_ts=app_ctx.time.time())
    except app_ctx.affiliate_service.AffiliateError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error rejecting affiliate payout {request_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not reject payout request'}), 500
    return app_ctx.jsonify({'payout': payout})
