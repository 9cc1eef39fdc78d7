"""Business logic handlers for creator payout accounts, settings and payouts."""

MAX_ACCOUNTS = 50
MAX_TRANSACTIONS = 1000
DETAIL_FIELDS = {
    'stripe': ('stripe_connect_id',),
    'paypal': ('email',),
    'bank_transfer': ('account_number', 'routing_number', 'bank_name', 'account_holder_name', 'account_type'),
    'crypto': ('wallet_address', 'crypto_currency', 'network'),
}


def _clear_other_defaults(app_ctx, uid, keep_account_id):
    for account in app_ctx.payouts_repo.list_accounts(app_ctx.db, uid, MAX_ACCOUNTS):
        if account['id'] != keep_account_id and account.get('is_default'):
            app_ctx.payouts_repo.update_account(app_ctx.db, account['id'], {'is_default': False})


def _verify_account(app_ctx, request, decoded_token, account_id):
    try:
        return app_ctx.payout_service.verify_payout_account(
            app_ctx.db,
            account_id,
            gateway=app_ctx.build_payout_gateway(app_ctx.get_public_base_url(request)),
            email=decoded_token.get('email', ''),
            now_ts=app_ctx.time.time(),
        )
    except app_ctx.payout_service.AccountVerificationError as e:
        app_ctx.log_event(app_ctx.logging.WARNING, 'payout_account_rejected', account_id=account_id, error=str(e))
        return app_ctx.payouts_repo.get_account(app_ctx.db, account_id)


def _load_own_account(app_ctx, request, account_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return None, None, (app_ctx.jsonify({'error': 'Unauthorized'}), 401)
    account = app_ctx.payouts_repo.get_account(app_ctx.db, account_id)
    if not account or account.get('uid') != decoded_token['uid']:
        return decoded_token, None, (app_ctx.jsonify({'error': 'Account not found'}), 404)
    return decoded_token, account, None


def list_accounts(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        accounts = app_ctx.payouts_repo.list_accounts(app_ctx.db, uid, MAX_ACCOUNTS)
    except Exception as e:
        app_ctx.logger.error(f"Error listing payout accounts for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load payout accounts'}), 500
    accounts.sort(key=lambda item: (not item.get('is_default'), -(item.get('created_at', 0) or 0)))
    return app_ctx.jsonify({'accounts': [app_ctx.payout_service.mask_account(account) for account in accounts]})


def create_account(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    data = request.get_json(silent=True) or {}
    account_type = str(data.get('type', '') or '').strip().lower()
    fields, errors = app_ctx.payout_service.validate_account_details(account_type, data)
    if errors:
        return app_ctx.jsonify({'error': 'Invalid payout account', 'details': errors}), 400

    try:
        existing = app_ctx.payouts_repo.list_accounts(app_ctx.db, uid, MAX_ACCOUNTS)
        if len(existing) >= MAX_ACCOUNTS:
            return app_ctx.jsonify({'error': f'You can have at most {MAX_ACCOUNTS} payout accounts'}), 400
        now_ts = app_ctx.time.time()
        is_default = not existing or bool(data.get('is_default'))
        account = dict(fields)
        account.update({
            'uid': uid,
            'type': account_type,
            'status': 'pending',
            'is_default': is_default,
            'onboarding_url': '',
            'verification_error': '',
            'created_at': now_ts,
            'updated_at': now_ts,
        })
        account_id = app_ctx.payouts_repo.create_account(app_ctx.db, account)
        if is_default:
            _clear_other_defaults(app_ctx, uid, account_id)
        account = _verify_account(app_ctx, request, decoded_token, account_id)
    except Exception as e:
        app_ctx.logger.error(f"Error creating payout account for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not create payout account'}), 500
    return app_ctx.jsonify({'account': app_ctx.payout_service.mask_account(account)}), 201


def get_account(app_ctx, request, account_id):
    _, account, error = _load_own_account(app_ctx, request, account_id)
    if error:
        return error
    return app_ctx.jsonify({'account': app_ctx.payout_service.mask_account(account)})


def update_account(app_ctx, request, account_id):
    decoded_token, account, error = _load_own_account(app_ctx, request, account_id)
    if error:
        return error
    data = request.get_json(silent=True) or {}
    if 'is_default' in data and not isinstance(data['is_default'], bool):
        return app_ctx.jsonify({'error': 'is_default must be true or false'}), 400

    detail_keys = [key for key in DETAIL_FIELDS.get(account.get('type'), ()) if key in data]
    updates = {}
    if detail_keys:
        merged = dict(account)
        merged.update({key: data[key] for key in detail_keys})
        fields, errors = app_ctx.payout_service.validate_account_details(account.get('type'), merged)
        if errors:
            return app_ctx.jsonify({'error': 'Invalid payout account', 'details': errors}), 400
        updates.update(fields)
        updates['status'] = 'pending'
    if data.get('is_default') is True:
        updates['is_default'] = True
    if not updates:
        return app_ctx.jsonify({'error': 'No updatable fields provided'}), 400
    updates['updated_at'] = app_ctx.time.time()

    try:
        app_ctx.payouts_repo.update_account(app_ctx.db, account_id, updates)
        if updates.get('is_default'):
            _clear_other_defaults(app_ctx, account['uid'], account_id)
        if detail_keys:
            account = _verify_account(app_ctx, request, decoded_token, account_id)
        else:
            account.update(updates)
    except Exception as e:
        app_ctx.logger.error(f"Error updating payout account {account_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not update payout account'}), 500
    return app_ctx.jsonify({'account': app_ctx.payout_service.mask_account(account)})


def delete_account(app_ctx, request, account_id):
    _, account, error = _load_own_account(app_ctx, request, account_id)
    if error:
        return error
    try:
        if account.get('is_default'):
            others = [
                item for item in app_ctx.payouts_repo.list_accounts(app_ctx.db, account['uid'], MAX_ACCOUNTS)
                if item['id'] != account_id
            ]
            if others:
                others.sort(key=lambda item: (item.get('status') != 'verified', item.get('created_at', 0) or 0))
                app_ctx.payouts_repo.update_account(app_ctx.db, others[0]['id'], {'is_default': True})
        app_ctx.payouts_repo.delete_account(app_ctx.db, account_id)
    except Exception as e:
        app_ctx.logger.error(f"Error deleting payout account {account_id}: {e}")
        return app_ctx.jsonify({'error': 'Could not delete payout account'}), 500
    return app_ctx.jsonify({'success': True})


def validate_payout_settings(raw, current):
    """Return (updates, errors); payout_day is checked against the resulting frequency."""
    raw = raw if isinstance(raw, dict) else {}
    updates = {}
    errors = {}
    if 'minimum_payout' in raw:
        value = raw['minimum_payout']
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            errors['minimum_payout'] = 'Minimum payout must be positive'
        else:
            updates['minimum_payout'] = round(float(value), 2)
    if 'payout_frequency' in raw:
        frequency = str(raw['payout_frequency'] or '').strip().lower()
        if frequency not in ('weekly', 'biweekly', 'monthly'):
            errors['payout_frequency'] = 'Frequency must be weekly, biweekly or monthly'
        else:
            updates['payout_frequency'] = frequency
    if 'automatic_payouts' in raw:
        if not isinstance(raw['automatic_payouts'], bool):
            errors['automatic_payouts'] = 'Must be true or false'
        else:
            updates['automatic_payouts'] = raw['automatic_payouts']

    frequency = updates.get('payout_frequency', current.get('payout_frequency', 'monthly'))
    max_day = 31 if frequency == 'monthly' else 7
    if 'payout_day' in raw:
        day = raw['payout_day']
        if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= max_day:
            errors['payout_day'] = f'Payout day must be between 1 and {max_day} for {frequency} payouts'
        else:
            updates['payout_day'] = day
    elif 'payout_frequency' in updates and int(current.get('payout_day', 1) or 1) > max_day:
        updates['payout_day'] = 1
    return updates, errors


def get_settings(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        settings = app_ctx.payouts_repo.get_settings(app_ctx.db, uid, app_ctx.DEFAULT_PAYOUT_SETTINGS)
    except Exception as e:
        app_ctx.logger.error(f"Error loading payout settings for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load payout settings'}), 500
    return app_ctx.jsonify({'settings': settings})


def update_settings(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        current = app_ctx.payouts_repo.get_settings(app_ctx.db, uid, app_ctx.DEFAULT_PAYOUT_SETTINGS)
        updates, errors = validate_payout_settings(request.get_json(silent=True) or {}, current)
        if errors:
            return app_ctx.jsonify({'error': 'Invalid payout settings', 'details': errors}), 400
        stored = {key: current[key] for key in app_ctx.DEFAULT_PAYOUT_SETTINGS}
        stored.update(updates)
        stored['updated_at'] = app_ctx.time.time()
        app_ctx.payouts_repo.set_settings(app_ctx.db, uid, stored)
        current.update(stored)
    except Exception as e:
        app_ctx.logger.error(f"Error saving payout settings for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not save payout settings'}), 500
    return app_ctx.jsonify({'settings': current})


def list_payouts(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    page, limit = app_ctx.parse_pagination(request)
    try:
        transactions = app_ctx.payouts_repo.list_transactions(app_ctx.db, uid, MAX_TRANSACTIONS)
    except Exception as e:
        app_ctx.logger.error(f"Error listing payouts for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not load payouts'}), 500
    transactions.sort(key=lambda item: item.get('created_at', 0) or 0, reverse=True)
    items, pagination = app_ctx.paginate(transactions, page, limit)
    return app_ctx.jsonify({'payouts': items, 'pagination': pagination})


def create_payout(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    data = request.get_json(silent=True) or {}
    account_id = str(data.get('payout_account_id', '') or '').strip()
    amount = data.get('amount')
    if not account_id:
        return app_ctx.jsonify({'error': 'payout_account_id is required'}), 400
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount <= 0:
        return app_ctx.jsonify({'error': 'Amount must be a positive number'}), 400
    amount = app_ctx.round_money(amount)
    if amount < app_ctx.MIN_MANUAL_PAYOUT:
        return app_ctx.jsonify({'error': f'Minimum payout amount is {app_ctx.MIN_MANUAL_PAYOUT:.2f}'}), 400

    account = app_ctx.payouts_repo.get_account(app_ctx.db, account_id)
    if not account or account.get('uid') != uid:
        return app_ctx.jsonify({'error': 'Payout account not found'}), 404
    if account.get('status') != 'verified':
        return app_ctx.jsonify({'error': 'Payout account is not verified'}), 400

    try:
        transaction = app_ctx.payout_service.create_payout_transaction(
            app_ctx.db,
            uid,
            account,
            amount,
            description=data.get('description') or 'Manual payout',
            reference_prefix='MANUAL',
            firestore_module=app_ctx.firestore,
            now_ts=app_ctx.time.time(),
        )
    except app_ctx.payout_service.InsufficientBalanceError as e:
        return app_ctx.jsonify({'error': 'Insufficient balance', 'available_balance': e.available_balance}), 400
    except Exception as e:
        app_ctx.logger.error(f"Error creating payout for {uid}: {e}")
        return app_ctx.jsonify({'error': 'Could not create payout'}), 500

    try:
        transaction = app_ctx.process_payout(transaction['id'], app_ctx.get_public_base_url(request)) or transaction
    except Exception as e:
        app_ctx.logger.error(f"Error processing payout {transaction['id']}: {e}")
    return app_ctx.jsonify({'payout': transaction}), 201
