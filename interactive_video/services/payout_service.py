"""Creator payout accounts, disbursement backends and payout processing."""

import re
import uuid

from interactive_video.repositories import payouts_repo
from interactive_video.services import earnings_service

ACCOUNT_TYPES = ('stripe', 'paypal', 'bank_transfer', 'crypto')
ACCOUNT_STATUSES = ('pending', 'verified', 'rejected')
TRANSACTION_STATUSES = ('pending', 'processing', 'completed', 'failed')
BANK_ACCOUNT_TYPES = ('checking', 'savings')
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
ROUTING_RE = re.compile(r'^\d{9}$')
ACCOUNT_NUMBER_RE = re.compile(r'^\d{4,17}$')
BTC_ADDRESS_RE = re.compile(r'^(1|3|bc1)[a-zA-Z0-9]{25,42}$')
EVM_ADDRESS_RE = re.compile(r'^0x[a-fA-F0-9]{40}$')
EVM_CURRENCIES = {'ETH', 'USDC', 'USDT'}
SENSITIVE_FIELDS = ('account_number', 'routing_number')
COINBASE_EXCHANGE_RATES_URL = 'https://api.coinbase.com/v2/exchange-rates'
COINBASE_CHARGES_URL = 'https://api.commerce.coinbase.com/charges'


class PayoutError(Exception):
    pass


class AccountVerificationError(PayoutError):
    pass


class InsufficientBalanceError(PayoutError):
    def __init__(self, available_balance):
        super().__init__('Insufficient balance')
        self.available_balance = available_balance


def is_valid_routing_number(routing_number):
    if not ROUTING_RE.match(routing_number or ''):
        return False
    digits = [int(ch) for ch in routing_number]
    checksum = (
        3 * (digits[0] + digits[3] + digits[6])
        + 7 * (digits[1] + digits[4] + digits[7])
        + (digits[2] + digits[5] + digits[8])
    )
    return checksum % 10 == 0


def is_valid_wallet_address(address, currency):
    currency = str(currency or '').upper()
    if currency == 'BTC':
        return bool(BTC_ADDRESS_RE.match(address))
    if currency in EVM_CURRENCIES:
        return bool(EVM_ADDRESS_RE.match(address))
    return len(address) >= 26


def validate_account_details(account_type, raw):
    """Return (fields, errors) with only the fields the account type uses."""
    raw = raw if isinstance(raw, dict) else {}
    errors = {}
    fields = {}

    def text(key, max_len=200):
        return str(raw.get(key, '') or '').strip()[:max_len]

    if account_type not in ACCOUNT_TYPES:
        return {}, {'type': f"Type must be one of: {', '.join(ACCOUNT_TYPES)}"}

    if account_type == 'stripe':
        connect_id = text('stripe_connect_id', 64)
        if connect_id and not connect_id.startswith('acct_'):
            errors['stripe_connect_id'] = 'Stripe account id must start with acct_'
        fields['stripe_connect_id'] = connect_id
    elif account_type == 'paypal':
        email = text('email', 160).lower()
        if not EMAIL_RE.match(email):
            errors['email'] = 'A valid PayPal email is required'
        fields['email'] = email
    elif account_type == 'bank_transfer':
        fields = {
            'account_number': re.sub(r'\s+', '', text('account_number', 40)),
            'routing_number': re.sub(r'\s+', '', text('routing_number', 20)),
            'bank_name': text('bank_name'),
            'account_holder_name': text('account_holder_name'),
            'account_type': text('account_type', 20).lower(),
        }
        if not ACCOUNT_NUMBER_RE.match(fields['account_number']):
            errors['account_number'] = 'Account number must be 4-17 digits'
        if not is_valid_routing_number(fields['routing_number']):
            errors['routing_number'] = 'Routing number must be a valid 9-digit ABA number'
        if not fields['bank_name']:
            errors['bank_name'] = 'Bank name is required'
        if not fields['account_holder_name']:
            errors['account_holder_name'] = 'Account holder name is required'
        if fields['account_type'] not in BANK_ACCOUNT_TYPES:
            errors['account_type'] = 'Account type must be checking or savings'
    elif account_type == 'crypto':
        fields = {
            'wallet_address': text('wallet_address', 120),
            'crypto_currency': text('crypto_currency', 12).upper(),
            'network': text('network', 40).lower(),
        }
        if not fields['crypto_currency']:
            errors['crypto_currency'] = 'Currency is required'
        if not fields['network']:
            errors['network'] = 'Network is required'
        if not fields['wallet_address'] or not is_valid_wallet_address(fields['wallet_address'], fields['crypto_currency']):
            errors['wallet_address'] = 'Wallet address is not valid for this currency'
    return fields, errors


def mask_account(account):
    data = dict(account)
    for key in SENSITIVE_FIELDS:
        value = str(data.pop(key, '') or '')
        if value:
            data[f'{key}_last4'] = value[-4:]
    data.pop('stripe_customer_id', None)
    return data


def to_cents(amount):
    return int(round(float(amount) * 100))


class PayoutGateway:
    """Talks to Stripe, PayPal and Coinbase. Each disburse call returns {'external_id', 'account_updates'}."""

    def __init__(self, *, stripe_module, http, paypal_client_id, paypal_client_secret, paypal_api_base,
                 coinbase_api_key, base_url, logger, timeout=20):
        self.stripe = stripe_module
        self.http = http
        self.paypal_client_id = paypal_client_id
        self.paypal_client_secret = paypal_client_secret
        self.paypal_api_base = paypal_api_base
        self.coinbase_api_key = coinbase_api_key
        self.base_url = base_url
        self.logger = logger
        self.timeout = timeout

    def verify_stripe_account(self, account, email=''):
        connect_id = account.get('stripe_connect_id', '')
        if not connect_id:
            created = self.stripe.Account.create(
                type='express',
                email=email or None,
                capabilities={'transfers': {'requested': True}},
                metadata={'uid': account.get('uid', '')},
            )
            connect_id = created['id']
        remote = self.stripe.Account.retrieve(connect_id)
        if remote.get('details_submitted') and remote.get('payouts_enabled'):
            return {'status': 'verified', 'stripe_connect_id': connect_id, 'onboarding_url': ''}
        link = self.stripe.AccountLink.create(
            account=connect_id,
            refresh_url=f"{self.base_url}/creator/payouts?onboarding=refresh",
            return_url=f"{self.base_url}/creator/payouts?onboarding=done",
            type='account_onboarding',
        )
        return {'status': 'pending', 'stripe_connect_id': connect_id, 'onboarding_url': link['url']}

    def disburse(self, transaction, account):
        handlers = {
            'stripe': self.stripe_transfer,
            'paypal': self.paypal_payout,
            'bank_transfer': self.bank_transfer,
            'crypto': self.crypto_payout,
        }
        handler = handlers.get(account.get('type'))
        if handler is None:
            raise PayoutError(f"Unsupported payout account type: {account.get('type')}")
        return handler(transaction, account)

    def stripe_transfer(self, transaction, account):
        if not account.get('stripe_connect_id'):
            raise PayoutError('Stripe account is not connected')
        transfer = self.stripe.Transfer.create(
            amount=to_cents(transaction['amount']),
            currency=transaction.get('currency', 'usd'),
            destination=account['stripe_connect_id'],
            transfer_group=transaction['reference'],
            metadata={'payout_id': transaction['id'], 'uid': transaction['uid']},
        )
        return {'external_id': transfer['id'], 'account_updates': {}}

    def _paypal_access_token(self):
        if not self.paypal_client_id or not self.paypal_client_secret:
            raise PayoutError('PayPal payouts are not configured')
        response = self.http.post(
            f"{self.paypal_api_base}/v1/oauth2/token",
            data={'grant_type': 'client_credentials'},
            auth=(self.paypal_client_id, self.paypal_client_secret),
            headers={'Accept': 'application/json'},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response.json()['access_token']

    def paypal_payout(self, transaction, account):
        if not account.get('email'):
            raise PayoutError('PayPal email is required for PayPal payouts')
        access_token = self._paypal_access_token()
        note = transaction.get('description') or 'Creator payout'
        response = self.http.post(
            f"{self.paypal_api_base}/v1/payments/payouts",
            json={
                'sender_batch_header': {
                    'sender_batch_id': transaction['reference'],
                    'email_subject': 'You have a payout from Interactive Video Platform',
                    'email_message': transaction.get('description') or 'Your creator payout has been processed.',
                },
                'items': [{
                    'recipient_type': 'EMAIL',
                    'amount': {
                        'value': f"{float(transaction['amount']):.2f}",
                        'currency': str(transaction.get('currency', 'usd')).upper(),
                    },
                    'note': note,
                    'receiver': account['email'],
                    'sender_item_id': transaction['id'],
                }],
            },
            headers={'Authorization': f"Bearer {access_token}", 'Content-Type': 'application/json'},
            timeout=self.timeout,
        )
        if response.status_code != 201:
            raise PayoutError(f"PayPal API error: {response.status_code}")
        batch_header = (response.json() or {}).get('batch_header', {})
        return {'external_id': batch_header.get('payout_batch_id', ''), 'account_updates': {}}

    def bank_transfer(self, transaction, account):
        required = ('account_number', 'routing_number', 'bank_name', 'account_holder_name')
        if any(not account.get(key) for key in required):
            raise PayoutError('Bank account details are incomplete')
        token = self.stripe.Token.create(bank_account={
            'country': 'US',
            'currency': 'usd',
            'account_holder_name': account['account_holder_name'],
            'account_holder_type': 'individual',
            'routing_number': account['routing_number'],
            'account_number': account['account_number'],
        })
        account_updates = {}
        customer_id = account.get('stripe_customer_id', '')
        if not customer_id:
            customer = self.stripe.Customer.create(
                description=f"Creator: {account['account_holder_name']}",
                metadata={'uid': transaction['uid']},
            )
            customer_id = customer['id']
            account_updates['stripe_customer_id'] = customer_id
        source = self.stripe.Customer.create_source(customer_id, source=token['id'])
        payout = self.stripe.Payout.create(
            amount=to_cents(transaction['amount']),
            currency=str(transaction.get('currency', 'usd')).lower(),
            method='standard',
            destination=source['id'],
            statement_descriptor='CREATOR PAYOUT',
            metadata={'payout_id': transaction['id']},
        )
        return {'external_id': payout['id'], 'account_updates': account_updates}

    def crypto_payout(self, transaction, account):
        if not account.get('wallet_address') or not account.get('crypto_currency') or not account.get('network'):
            raise PayoutError('Crypto wallet details are incomplete')
        if not self.coinbase_api_key:
            raise PayoutError('Crypto payouts are not configured')
        currency = str(transaction.get('currency', 'usd')).upper()
        rates_response = self.http.get(COINBASE_EXCHANGE_RATES_URL, params={'currency': currency}, timeout=self.timeout)
        rates_response.raise_for_status()
        rates = ((rates_response.json() or {}).get('data') or {}).get('rates') or {}
        crypto_rate = rates.get(account['crypto_currency'].upper())
        if not crypto_rate:
            raise PayoutError(f"Exchange rate not available for {account['crypto_currency']}")
        crypto_amount = float(transaction['amount']) * float(crypto_rate)

        charge_response = self.http.post(
            COINBASE_CHARGES_URL,
            json={
                'name': 'Creator Payout',
                'description': transaction.get('description') or 'Creator payout',
                'local_price': {'amount': f"{float(transaction['amount']):.2f}", 'currency': currency},
                'pricing_type': 'fixed_price',
                'metadata': {
                    'payout_id': transaction['id'],
                    'uid': transaction['uid'],
                    'wallet_address': account['wallet_address'],
                    'network': account['network'],
                    'crypto_amount': f"{crypto_amount:.8f}",
                },
            },
            headers={
                'X-CC-Api-Key': self.coinbase_api_key,
                'X-CC-Version': '2018-03-22',
                'Content-Type': 'application/json',
            },
            timeout=self.timeout,
        )
        if charge_response.status_code != 201:
            raise PayoutError(f"Coinbase Commerce API error: {charge_response.status_code}")
        if self.logger is not None:
            self.logger.info(
                f"Crypto payout {transaction['id']}: {crypto_amount:.8f} {account['crypto_currency']} "
                f"to {account['wallet_address']} on {account['network']}"
            )
        charge = (charge_response.json() or {}).get('data') or {}
        return {'external_id': charge.get('id', ''), 'account_updates': {}}


def verify_payout_account(db, account_id, *, gateway, email='', now_ts):
    """Verify an account with its backend. Raises AccountVerificationError and marks it rejected on failure."""
    account = payouts_repo.get_account(db, account_id)
    if not account:
        raise AccountVerificationError('Payout account not found')
    try:
        _, errors = validate_account_details(account.get('type'), account)
        if errors:
            raise AccountVerificationError('; '.join(f"{key}: {value}" for key, value in errors.items()))
        if account['type'] == 'stripe':
            updates = gateway.verify_stripe_account(account, email=email)
        else:
            updates = {'status': 'verified'}
    except Exception as e:
        payouts_repo.update_account(db, account_id, {
            'status': 'rejected',
            'verification_error': str(e)[:500],
            'updated_at': now_ts,
        })
        if isinstance(e, AccountVerificationError):
            raise
        raise AccountVerificationError(str(e)) from e
    updates['verification_error'] = ''
    updates['updated_at'] = now_ts
    if updates['status'] == 'verified':
        updates['verified_at'] = now_ts
    payouts_repo.update_account(db, account_id, updates)
    account.update(updates)
    return account


def new_reference(prefix):
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


def create_payout_transaction(db, uid, account, amount, *, description, reference_prefix, firestore_module, now_ts, currency='usd'):
    """Reserve balance and create a pending transaction atomically.

    The payout settings doc is read inside the transaction so concurrent requests for
    the same creator conflict and retry against the updated balance.
    """
    amount = earnings_service.round_money(amount)
    tx_ref = payouts_repo.transaction_ref(db)
    lock_ref = payouts_repo.settings_ref(db, uid)
    data = {
        'uid': uid,
        'payout_account_id': account['id'],
        'payout_account_type': account.get('type', ''),
        'amount': amount,
        'currency': currency,
        'status': 'pending',
        'reference': new_reference(reference_prefix),
        'description': str(description or '').strip()[:500],
        'failure_reason': '',
        'external_id': '',
        'processed_at': None,
        'created_at': now_ts,
    }
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        lock_ref.get(transaction=txn)
        available = earnings_service.get_available_balance(db, uid)
        if amount > available:
            raise InsufficientBalanceError(available)
        txn.set(tx_ref, data)
        txn.set(lock_ref, {'last_payout_request_at': now_ts}, merge=True)

    _txn(transaction)
    data['id'] = tx_ref.id
    return data


def process_payout_request(db, transaction_id, *, gateway, now_ts):
    """pending -> processing -> completed, or failed with failure_reason (re-raised as PayoutError)."""
    transaction = payouts_repo.get_transaction(db, transaction_id)
    if not transaction:
        raise PayoutError('Payout transaction not found')
    if transaction.get('status') != 'pending':
        raise PayoutError(f"Payout transaction is already {transaction.get('status')}")

    payouts_repo.update_transaction(db, transaction_id, {'status': 'processing', 'updated_at': now_ts})
    try:
        account = payouts_repo.get_account(db, transaction.get('payout_account_id'))
        if not account or account.get('uid') != transaction.get('uid'):
            raise PayoutError('Payout account not found')
        if account.get('status') != 'verified':
            raise PayoutError('Payout account is not verified')
        result = gateway.disburse(transaction, account)
    except Exception as e:
        failure = {'status': 'failed', 'failure_reason': str(e)[:500], 'updated_at': now_ts}
        payouts_repo.update_transaction(db, transaction_id, failure)
        transaction.update(failure)
        if isinstance(e, PayoutError):
            raise
        raise PayoutError(str(e)) from e

    if result.get('account_updates'):
        payouts_repo.update_account(db, account['id'], result['account_updates'])
    completion = {
        'status': 'completed',
        'external_id': result.get('external_id', ''),
        'processed_at': now_ts,
        'updated_at': now_ts,
    }
    payouts_repo.update_transaction(db, transaction_id, completion)
    transaction.update(completion)
    return transaction


def get_default_verified_account(db, uid):
    for account in payouts_repo.list_accounts(db, uid):
        if account.get('is_default') and account.get('status') == 'verified':
            return account
    return None


def trigger_automatic_payout(db, uid, *, default_settings, firestore_module, now_ts):
    """Create an AUTO payout for the full balance when the creator qualifies. Returns the transaction id or None."""
    settings = payouts_repo.get_settings(db, uid, default_settings)
    if not settings.get('automatic_payouts'):
        return None
    balance = earnings_service.get_available_balance(db, uid)
    if balance <= 0 or balance < float(settings.get('minimum_payout', 0) or 0):
        return None
    account = get_default_verified_account(db, uid)
    if not account:
        return None
    try:
        transaction = create_payout_transaction(
            db,
            uid,
            account,
            balance,
            description='Automatic payout',
            reference_prefix='AUTO',
            firestore_module=firestore_module,
            now_ts=now_ts,
        )
    except InsufficientBalanceError:
        return None
    return transaction['id']
