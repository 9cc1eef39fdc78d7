"""Business logic handlers for affiliate program APIs."""

import random

from interactive_video.services.affiliate_service import COMMISSION_STATUSES, MAX_LIST_DOCS

RECENT_LIMIT = 10
PUBLIC_PROGRAM_FIELDS = ('name', 'description', 'commission_rate', 'cookie_duration_days', 'min_payout', 'signup_bonus')


def public_program(program):
    return {key: program.get(key) for key in PUBLIC_PROGRAM_FIELDS}


def _newest_first(items):
    return sorted(items, key=lambda item: item.get('created_at', 0) or 0, reverse=True)


def _load_affiliate(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    affiliate = app_ctx.affiliate_repo.get_affiliate(app_ctx.db, decoded_token['uid'])
    if not affiliate:
        return decoded_token, None, (app_ctx.jsonify({'error': 'You are not an affiliate'}), 404)
    return decoded_token, affiliate, None


def get_program(app_ctx, request):
    if not app_ctx.AFFILIATE_PROGRAM.get('active'):
        return app_ctx.jsonify({'error': 'Affiliate program is not active'}), 404
    return app_ctx.jsonify({'program': public_program(app_ctx.AFFILIATE_PROGRAM)})


def track_referral(app_ctx, request):
    affiliate = None
    if app_ctx.AFFILIATE_PROGRAM.get('active'):
        try:
            affiliate = app_ctx.affiliate_service.find_active_affiliate(app_ctx.db, request.args.get('ref', ''))
        except Exception as e:
            app_ctx.logger.error(f"Error looking up referral code: {e}")
            return app_ctx.jsonify({'error': 'Could not track referral'}), 500
    if not affiliate:
        return app_ctx.jsonify({'tracked': False})
    response = app_ctx.jsonify({'tracked': True})
    response.set_cookie(
        app_ctx.AFFILIATE_COOKIE_NAME,
        affiliate['referral_code'],
        max_age=int(app_ctx.AFFILIATE_PROGRAM['cookie_duration_days']) * 86400,
        httponly=True,
        samesite='Lax',
        secure=not app_ctx.is_dev_environment(),
    )
    return response


def join_program(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        affiliate = app_ctx.affiliate_service.join_program(
            app_ctx.db,
            uid,
            decoded_token.get('email', ''),
            program=app_ctx.AFFILIATE_PROGRAM,
            rng=random,
            now_ts=app_ctx.time.time(),
        )
    except app_ctx.affiliate_service.AffiliateError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error joining affiliate program for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not join affiliate program'}), 500
    app_ctx.log_event(app_ctx.logging.INFO, 'affiliate_joined', uid=uid)
    return app_ctx.jsonify({'affiliate': affiliate}), 201


def get_dashboard(app_ctx, request):
    decoded_token, affiliate, error = _load_affiliate(app_ctx, request)
    if error:
        return error
    uid = decoded_token['uid']
    try:
        referrals = _newest_first(app_ctx.affiliate_repo.list_referrals(app_ctx.db, uid, MAX_LIST_DOCS))
        commissions = _newest_first(app_ctx.affiliate_repo.list_commissions(app_ctx.db, uid, MAX_LIST_DOCS))
    except Exception as e:
        app_ctx.logger.error(f"Error loading affiliate dashboard for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load affiliate dashboard'}), 500
    return app_ctx.jsonify({
        'affiliate': affiliate,
        'program': public_program(app_ctx.AFFILIATE_PROGRAM),
        'referral_link': f"{app_ctx.get_public_base_url(request)}/api/affiliate/track?ref={affiliate.get('referral_code', '')}",
        'recent_referrals': referrals[:RECENT_LIMIT],
        'recent_commissions': commissions[:RECENT_LIMIT],
        'stats': app_ctx.affiliate_service.summarize_commissions(commissions),
    })


def list_referrals(app_ctx, request):
    decoded_token, _, error = _load_affiliate(app_ctx, request)
    if error:
        return error
    page, limit = app_ctx.parse_pagination(request)
    referrals = _newest_first(app_ctx.affiliate_repo.list_referrals(app_ctx.db, decoded_token['uid'], MAX_LIST_DOCS))
    items, pagination = app_ctx.paginate(referrals, page, limit)
    return app_ctx.jsonify({'referrals': items, 'pagination': pagination})


def list_commissions(app_ctx, request):
    decoded_token, _, error = _load_affiliate(app_ctx, request)
    if error:
        return error
    status = str(request.args.get('status', '') or '').strip().lower()
    if status and status not in COMMISSION_STATUSES:
        return app_ctx.jsonify({'error': 'Invalid status filter'}), 400
    page, limit = app_ctx.parse_pagination(request)
    commissions = _newest_first(app_ctx.affiliate_repo.list_commissions(
        app_ctx.db, decoded_token['uid'], MAX_LIST_DOCS, status=status,
    ))
    items, pagination = app_ctx.paginate(commissions, page, limit)
    return app_ctx.jsonify({'commissions': items, 'pagination': pagination})


def list_payouts(app_ctx, request):
    decoded_token, _, error = _load_affiliate(app_ctx, request)
    if error:
        return error
    payouts = _newest_first(app_ctx.affiliate_repo.list_payout_requests(app_ctx.db, decoded_token['uid'], MAX_LIST_DOCS))
    return app_ctx.jsonify({'payouts': payouts})


def request_payout(app_ctx, request):
    decoded_token, _, error = _load_affiliate(app_ctx, request)
    if error:
        return error
    amount = (request.get_json(silent=True) or {}).get('amount')
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        return app_ctx.jsonify({'error': 'Amount must be a positive number'}), 400
    try:
        payout = app_ctx.affiliate_service.request_payout(
            app_ctx.db, decoded_token['uid'], amount, program=app_ctx.AFFILIATE_PROGRAM,
            firestore_module=app_ctx.firestore, now_ts=app_ctx.time.time(),
        )
    except app_ctx.affiliate_service.AffiliateError as e:
        return app_ctx.jsonify({'error': str(e)}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error requesting affiliate payout for {decoded_token['uid']}: {e}")
        return app_ctx.jsonify({'error': 'Could not request payout'}), 500
    app_ctx.log_event(app_ctx.logging.INFO, 'affiliate_payout_requested', uid=decoded_token['uid'], amount=payout['amount'])
    return app_ctx.jsonify({'payout': payout}), 201


def get_settings(app_ctx, request):
    _, affiliate, error = _load_affiliate(app_ctx, request)
    if error:
        return error
    return app_ctx.jsonify({'settings': {
        'payout_method': affiliate.get('payout_method', 'paypal'),
        'payout_email': affiliate.get('payout_email', ''),
    }})


def update_settings(app_ctx, request):
    decoded_token, affiliate, error = _load_affiliate(app_ctx, request)
    if error:
        return error
    updates, errors = app_ctx.affiliate_service.validate_settings(request.get_json(silent=True) or {})
    if errors:
        return app_ctx.jsonify({'error': 'Invalid affiliate settings', 'details': errors}), 400
    if not updates:
        return app_ctx.jsonify({'error': 'No updatable fields provided'}), 400
    updates['updated_at'] = app_ctx.time.time()
    try:
        app_ctx.affiliate_repo.update_affiliate(app_ctx.db, decoded_token['uid'], updates)
    except Exception as e:
        app_ctx.logger.error(f"Error saving affiliate settings for {decoded_token['uid']}: {e}")
        return app_ctx.jsonify({'error': 'Could not save affiliate settings'}), 500
    affiliate.update(updates)
    return app_ctx.jsonify({'settings': {
        'payout_method': affiliate.get('payout_method', 'paypal'),
        'payout_email': affiliate.get('payout_email', ''),
    }})
